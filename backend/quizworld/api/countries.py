from flask import Blueprint, jsonify, request, current_app
from quizworld.errors import UpstreamUnavailable
from quizworld.services.quiz.countries import get_country_directory


countries = Blueprint('countries', __name__)


@countries.route('/countries', methods=['GET'])
def list_countries():
    """
    Returns every country record, read through the reference-data cache.
    ``?shape=feature`` returns the globe view's feature objects instead.
    """
    try:
        records = get_country_directory().all()
    except UpstreamUnavailable as exc:
        current_app.logger.error(f"[countries] {exc}")
        return jsonify({'error': 'Failed to fetch countries'}), 500
    if request.args.get('shape') == 'feature':
        return jsonify([c.to_feature() for c in records])
    return jsonify([c.to_dict() for c in records])


@countries.route('/countries/<string:iso_code>', methods=['GET'])
def get_country(iso_code):
    try:
        record = get_country_directory().get(iso_code)
    except UpstreamUnavailable as exc:
        current_app.logger.error(f"[countries] iso={iso_code} {exc}")
        return jsonify({'error': 'Failed to fetch countries'}), 500
    if record is None:
        return jsonify({'error': 'Country not found'}), 404
    return jsonify(record.to_dict())
