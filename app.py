"""
Card decks as OCI artifacts.

Builds an OCI artifact from a deck of playing-card images, pushes it to a
registry or saves it as a local OCI image layout, and serves a published
deck over HTTP.

Commands:
    push      Build the deck and push it (--target) or save it (--local)
    serve     Load a deck from a layout directory or registry and serve it
    registry  Run a minimal OCI registry (in memory or on disk)

Environment Variables:
    LOG_LEVEL, FLASK_HOST, FLASK_PORT, REGISTRY_PORT, DECK_FILE,
    CARD_IMAGES_DIR, PLAIN_HTTP, TRANSFER_CONCURRENCY, REGISTRY_TIMEOUT,
    MAX_TAG_LENGTH, MAX_REPOSITORY_LENGTH

Example:
    $ python app.py registry --port 5000
    $ python app.py push --target localhost:5000/deck:v1 --plain-http
    $ python app.py push --local ./deck-layout
    $ python app.py serve localhost:5000/deck:v1 --plain-http
"""

import argparse
import logging
import sys

from cardoci.config import config
from cardoci.errors import CardOCIError
from cardoci.reader import load_deck, open_source
from cardoci.registry_server import RepositoryStores, create_registry_app
from cardoci.routes import create_deck_app
from cardoci.transfer import push_deck, save_deck_local
from cardoci.validation import DEFAULT_TAG, parse_reference

# Configure logging
logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="card-oci", description="Card decks as OCI artifacts")
    sub = parser.add_subparsers(dest="command", required=True)

    push = sub.add_parser("push", help="build a deck artifact and publish it")
    push.add_argument("--target", default="", help="registry reference (e.g. localhost:5000/deck:v1)")
    push.add_argument("--local", default="", help="output OCI layout directory (instead of pushing to registry)")
    push.add_argument("--deck", default=config.DECK_FILE, help="path to deck definition file")
    push.add_argument("--images", default=config.CARD_IMAGES_DIR, help="path to card PNG directory")
    push.add_argument("--plain-http", action="store_true", default=config.PLAIN_HTTP,
                      help="use HTTP instead of HTTPS")

    serve = sub.add_parser("serve", help="serve a published deck over HTTP")
    serve.add_argument("source", help="OCI layout directory or registry reference")
    serve.add_argument("--plain-http", action="store_true", default=config.PLAIN_HTTP,
                       help="use HTTP instead of HTTPS")
    serve.add_argument("--host", default=config.FLASK_HOST)
    serve.add_argument("--port", type=int, default=config.FLASK_PORT)

    registry = sub.add_parser("registry", help="run a minimal OCI registry")
    registry.add_argument("--storage", default="", help="directory for OCI layouts (default: in memory)")
    registry.add_argument("--host", default=config.FLASK_HOST)
    registry.add_argument("--port", type=int, default=config.REGISTRY_PORT)

    return parser


def run(args) -> None:
    debug_mode = logger.getEffectiveLevel() == logging.DEBUG

    if args.command == "push":
        if args.local:
            tag = parse_reference(args.target).tag if args.target else DEFAULT_TAG
            save_deck_local(args.local, args.deck, args.images, tag)
        elif args.target:
            push_deck(args.target, args.deck, args.images, plain_http=args.plain_http)
        else:
            raise CardOCIError("either --target or --local is required")

    elif args.command == "serve":
        store, tag = open_source(args.source, plain_http=args.plain_http)
        deck = load_deck(store, tag)
        logger.info(f"Serving {len(deck.cards)} cards on http://{args.host}:{args.port}")
        create_deck_app(deck).run(host=args.host, port=args.port, debug=debug_mode)

    elif args.command == "registry":
        stores = RepositoryStores.on_disk(args.storage) if args.storage else RepositoryStores()
        where = args.storage or "memory"
        logger.info(f"Starting OCI registry on {args.host}:{args.port} (storage: {where})")
        create_registry_app(stores).run(host=args.host, port=args.port, debug=debug_mode)


def main(argv=None) -> int:
    """Main entry point for the card-oci command."""
    args = build_parser().parse_args(argv)
    logger.debug(f"Configuration: {config}")
    try:
        run(args)
    except CardOCIError as e:
        logger.error(f"error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
