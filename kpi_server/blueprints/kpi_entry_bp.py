# blueprints/kpi_entry_bp.py

from flask import Blueprint, current_app, jsonify, request

from .. import config
from ..errors import ValidationError
from ..periods import resolve_period
from ..utils import api_response, current_actor, login_required, parse_int

kpi_entry_bp = Blueprint('kpi_entry_bp', __name__, url_prefix='/api/v1/kpi-entries')


def _period_from_body(data):
    template_id = data.get('templateId')
    month = parse_int(data.get('month'), 'month')
    year = parse_int(data.get('year'), 'year')
    if not template_id or not month or not year:
        raise ValidationError('templateId, month, and year are required')
    return template_id, month, year


def _page_args(default_limit=config.DEFAULT_PAGE_LIMIT):
    page = parse_int(request.args.get('page'), 'page', 1)
    limit = parse_int(request.args.get('limit'), 'limit', default_limit)
    if page < 1 or limit < 1:
        raise ValidationError('page and limit must be positive')
    return page, limit


@kpi_entry_bp.route('/generate-default', methods=['POST'])
@login_required
def generate_default_entries():
    template_id, month, year = _period_from_body(request.get_json(silent=True) or {})
    result = current_app.batch_service.generate_default_entries(template_id, month, year, current_actor())
    return api_response(result, 'Default KPI entries generated successfully', 201)


@kpi_entry_bp.route('/<entry_id>/values', methods=['PUT'])
@login_required
def update_entry_values(entry_id):
    values = request.get_json(silent=True)
    if not isinstance(values, list):
        return jsonify({'success': False, 'message': 'values array is required'}), 400

    entry = current_app.kpi_entry_service.submit_values(entry_id, values, current_actor())
    return api_response(entry, 'KPI entry values updated successfully')


@kpi_entry_bp.route('/user-entries', methods=['GET'])
@login_required
def get_entries_by_user():
    page, limit = _page_args()
    result = current_app.kpi_entry_service.get_entries(
        created_for=request.args.get('createdFor'),
        month=parse_int(request.args.get('month'), 'month'),
        year=parse_int(request.args.get('year'), 'year'),
        template_id=request.args.get('templateId'),
        jurisdiction=request.args.get('jurisdiction'),
        status=request.args.get('status'),
        page=page,
        limit=limit,
    )
    return jsonify({'success': True, 'message': 'KPI entries fetched successfully', **result})


@kpi_entry_bp.route('/my-entries', methods=['GET'])
@login_required
def get_my_entries():
    page, limit = _page_args()
    result = current_app.kpi_entry_service.get_entries(
        created_for=current_actor(),
        month=parse_int(request.args.get('month'), 'month'),
        year=parse_int(request.args.get('year'), 'year'),
        template_id=request.args.get('templateId'),
        page=page,
        limit=limit,
    )
    return jsonify({'success': True, 'message': 'KPI entries fetched successfully', **result})


@kpi_entry_bp.route('/jurisdiction/<jurisdiction>', methods=['GET'])
@login_required
def get_entry_by_jurisdiction(jurisdiction):
    entry = current_app.kpi_entry_service.get_entry_by_jurisdiction(
        current_actor(),
        jurisdiction,
        month=parse_int(request.args.get('month'), 'month'),
        year=parse_int(request.args.get('year'), 'year'),
        template_id=request.args.get('templateId'),
    )
    return api_response(entry, 'KPI entry fetched successfully')


@kpi_entry_bp.route('/generate-final-reports', methods=['POST'])
@login_required
def generate_final_reports():
    template_id, month, year = _period_from_body(request.get_json(silent=True) or {})
    result = current_app.batch_service.generate_final_reports(template_id, month, year, current_actor())
    return api_response(result, 'Final KPI reports generated successfully')


def make_statistics_cache_key(template_id, department, role, month, year, page, limit):
    # Keyed on the resolved period, not the raw (possibly relative) parameters
    month_num, year_num = resolve_period(month, year, current_app.statistics_service.clock())
    return f"kpi_stats_{template_id or 'all'}_{department or 'all'}_{role or 'all'}_{month_num}_{year_num}_{page}_{limit}"


@kpi_entry_bp.route('/statistics', methods=['GET'])
@login_required
def get_statistics():
    """Rankings and summary for one period. The computed data is cached, not the response."""
    template_id = request.args.get('templateId')
    department = request.args.get('department')
    role = request.args.get('role')
    month = parse_int(request.args.get('month'), 'month')
    year = parse_int(request.args.get('year'), 'year')

    page, limit = _page_args(config.STATS_PAGE_LIMIT)

    cache_key = make_statistics_cache_key(template_id, department, role, month, year, page, limit)
    result = current_app.cache.get(cache_key)
    if result is None:
        result = current_app.statistics_service.rank(
            template_id=template_id, department=department, role=role, month=month, year=year,
            page=page, limit=limit,
        )
        current_app.cache.set(cache_key, result, timeout=config.STATS_CACHE_TIMEOUT)
    else:
        current_app.logger.info(f"CACHE HIT: {cache_key}")

    return api_response(result, 'KPI statistics fetched successfully')
