"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                                                                              ║
║  FACE RECOGNITION: PCA (Eigenfaces), LDA (Fisherfaces), ICA (Infomax)        ║
║                                                                              ║
║  Train:      đọc ảnh "{class}_{index}.ext", lưu manifest + binary data       ║
║  Recognize:  load database, nearest neighbor cho mỗi ảnh test                ║
║                                                                              ║
╚══════════════════════════════════════════════════════════════════════════════╝

Usage:
    python run_face_rec.py --train train_images/ --pca --lda
    python run_face_rec.py --test test_images/ --pca --lda
    python run_face_rec.py --train train_images/ --test test_images/ --all --timing
"""

import argparse
import os
import sys

from facerec import config
from facerec.backend import get_backend, set_backend
from facerec.database import Database
from facerec.ica import ICALayer
from facerec.timing import timing_print
from facerec.visualization import plot_basis, plot_mean_face


def print_phase(description):
    print(f"\n{'='*75}", flush=True)
    print(f"  {description}", flush=True)
    print(f"{'='*75}", flush=True)


def parse_size(text):
    """"HxW" → (height, width)."""
    try:
        height, width = (int(v) for v in text.lower().split("x"))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected HxW, got {text!r}") from None
    return height, width


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Subspace face recognition")
    parser.add_argument("--train", metavar="DIR",
                        help="Train a database on the images in DIR")
    parser.add_argument("--test", metavar="DIR",
                        help="Recognize the images in DIR")

    # algorithms
    parser.add_argument("--pca", action="store_true", help="Run PCA (Eigenfaces)")
    parser.add_argument("--lda", action="store_true", help="Run LDA (Fisherfaces)")
    parser.add_argument("--ica", action="store_true", help="Run ICA (Architecture I)")
    parser.add_argument("--identity", action="store_true",
                        help="Run the raw-pixel nearest neighbor baseline")
    parser.add_argument("--all", action="store_true", help="Run every algorithm")

    # hyperparameters
    parser.add_argument("--pca-n1", type=int, default=config.PCA_N1,
                        help="PCA components (<= 0: all positive, default: %(default)s)")
    parser.add_argument("--lda-n1", type=int, default=config.LDA_N1,
                        help="PCA dims before FLD (<= 0: n - c, default: %(default)s)")
    parser.add_argument("--lda-n2", type=int, default=config.LDA_N2,
                        help="FLD dims (<= 0: c - 1, default: %(default)s)")
    parser.add_argument("--ica-mi", type=int, default=config.ICA_MAX_ITERATIONS,
                        help="ICA max iterations (default: %(default)s)")
    parser.add_argument("--ica-lr", type=float, default=config.ICA_LEARNING_RATE,
                        help="ICA learning rate (<= 0: heuristic, default: %(default)s)")
    parser.add_argument("--ica-n", type=int, default=config.ICA_NUM_COMPONENTS,
                        help="ICA components (<= 0: all, default: %(default)s)")

    # database files
    parser.add_argument("--tset", default=config.TRAINING_SET_FILE,
                        help="Manifest file (default: %(default)s)")
    parser.add_argument("--tdata", default=config.TRAINING_DATA_FILE,
                        help="Training data file (default: %(default)s)")

    # misc
    parser.add_argument("--backend", choices=["cpu", "gpu"],
                        help="Force the compute backend (default: config.USE_GPU)")
    parser.add_argument("--plot", type=parse_size, metavar="HxW",
                        help="Save the mean face and basis images (image size HxW)")
    parser.add_argument("--timing", action="store_true", help="Print timing tree")
    parser.add_argument("--quiet", action="store_true",
                        help="Only print the accuracy of each algorithm")

    args = parser.parse_args(argv)
    if not args.train and not args.test:
        parser.error("nothing to do: give --train and/or --test")
    if args.all:
        args.pca = args.lda = args.ica = True
    if not (args.pca or args.lda or args.ica or args.identity):
        parser.error("no algorithm selected: use --pca, --lda, --ica, --identity or --all")
    return args


def main(argv=None):
    args = parse_args(argv)
    verbose = not args.quiet
    config.VERBOSE = verbose

    if args.backend:
        set_backend(args.backend)
    backend = get_backend()

    db = Database(
        pca=args.pca, lda=args.lda, ica=args.ica, identity=args.identity,
        pca_n1=args.pca_n1, lda_n1=args.lda_n1, lda_n2=args.lda_n2,
        ica_layer=ICALayer(num_components=args.ica_n,
                           max_iterations=args.ica_mi,
                           learning_rate=args.ica_lr),
        verbose=verbose,
    )

    if args.train:
        if verbose:
            print_phase(f"TRAINING ({backend.name})")
        db.train(args.train)
        for path in (args.tset, args.tdata):
            os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        db.save(args.tset, args.tdata)

    if args.test:
        if not args.train:
            db.load(args.tset, args.tdata)
        if verbose:
            print_phase("RECOGNITION")
        db.recognize(args.test)

    if args.plot:
        height, width = args.plot
        channels = db.num_dimensions // (height * width)
        plot_mean_face(db, height, width, channels)
        for name in db.layers:
            if name == "IDENTITY":
                continue
            plot_basis(db, name, height, width, channels)

    if args.timing:
        timing_print()

    db.release()
    return 0


if __name__ == "__main__":
    sys.exit(main())
