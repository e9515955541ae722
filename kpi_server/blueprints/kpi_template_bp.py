# blueprints/kpi_template_bp.py

from flask import Blueprint, current_app, request

from .. import config
from ..errors import ValidationError
from ..utils import api_response, current_actor, login_required, parse_int

kpi_template_bp = Blueprint('kpi_template_bp', __name__, url_prefix='/api/v1/kpi-templates')


@kpi_template_bp.route('/', methods=['POST'])
@login_required
def create_kpi_template():
    payload = request.get_json(silent=True) or {}
    template = current_app.kpi_template_service.create_template(payload, current_actor())
    return api_response(template.to_dict(), 'KPI template created successfully', 201)


@kpi_template_bp.route('/', methods=['GET'])
@login_required
def get_kpi_templates():
    result = current_app.kpi_template_service.list_templates(
        search=request.args.get('search'),
        department_slug=request.args.get('departmentSlug'),
        role=request.args.get('role'),
        page=parse_int(request.args.get('page'), 'page', 1),
        limit=parse_int(request.args.get('limit'), 'limit', config.DEFAULT_PAGE_LIMIT),
    )
    result['docs'] = [t.to_dict() for t in result['docs']]
    return api_response(result, 'KPI templates fetched successfully')


@kpi_template_bp.route('/<template_id>', methods=['GET'])
@login_required
def get_kpi_template(template_id):
    template = current_app.kpi_template_service.require_template(template_id)
    return api_response(template.to_dict(), 'KPI template fetched successfully')


@kpi_template_bp.route('/<template_id>', methods=['PUT'])
@login_required
def update_kpi_template(template_id):
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError('Request body must be a JSON object')
    template = current_app.kpi_template_service.update_template(template_id, payload, current_actor())
    return api_response(template.to_dict(), 'KPI template updated successfully')
