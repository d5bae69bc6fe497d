import os

import pytest

from run_face_rec import main, parse_args


def test_parse_args_all():
    args = parse_args(["--train", "faces", "--all"])
    assert args.pca and args.lda and args.ica


def test_parse_args_requires_work():
    with pytest.raises(SystemExit):
        parse_args(["--pca"])
    with pytest.raises(SystemExit):
        parse_args(["--train", "faces"])


def test_train_then_test(uniform_faces, tmp_path, capsys):
    train_dir, test_dir = uniform_faces
    tset = str(tmp_path / "db" / "training_set.dat")
    tdata = str(tmp_path / "db" / "training_data.dat")

    assert main(["--train", train_dir, "--pca", "--quiet",
                 "--tset", tset, "--tdata", tdata, "--backend", "cpu"]) == 0
    assert os.path.isfile(tset) and os.path.isfile(tdata)
    capsys.readouterr()

    assert main(["--test", test_dir, "--pca", "--quiet",
                 "--tset", tset, "--tdata", tdata]) == 0
    assert capsys.readouterr().out.strip() == "100.00"


def test_parse_args_identity():
    args = parse_args(["--test", "faces", "--identity"])
    assert args.identity and not args.pca
