"""
Flask application serving a loaded card deck.

Endpoints:
    - GET /                   - HTML page listing the deck's cards
    - GET /images/<filename>  - Card image bytes (image/png)
"""

import io
import logging

from flask import Flask, abort, render_template, send_file

from .cards import resolve
from .errors import InvalidCardCode

logger = logging.getLogger(__name__)


def to_filename(code: str) -> str:
    """Template filter: card shorthand to image filename, empty for invalid codes."""
    try:
        return resolve(code)
    except InvalidCardCode:
        return ""


def create_deck_app(deck) -> Flask:
    """
    Create the deck server for an already loaded and verified Deck.

    The deck is only read by the handlers, so no locking is needed.
    """
    app = Flask(__name__)
    app.add_template_filter(to_filename, "to_filename")

    @app.route("/")
    def index():
        """Render the index page with every card of the deck."""
        logger.debug(f"Index requested: {len(deck.cards)} cards")
        return render_template("index.html", cards=deck.cards)

    @app.route("/images/<path:filename>")
    def get_image(filename):
        """
        Return one card image.

        Returns:
            200 with image/png content, or 404 if the deck has no such image
        """
        data = deck.images.get(filename)
        if data is None:
            logger.warning(f"Image not found: {filename}")
            abort(404)

        logger.debug(f"Image sent: {filename}, {len(data)} bytes")
        return send_file(io.BytesIO(data), mimetype="image/png", download_name=filename)

    return app
