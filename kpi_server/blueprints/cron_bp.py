# blueprints/cron_bp.py
# Operator controls for the monthly KPI jobs. Admin department only.

from flask import Blueprint, current_app, request

from ..errors import ValidationError
from ..utils import admin_required, api_response, current_actor, get_user_ip, parse_int

cron_bp = Blueprint('cron_bp', __name__, url_prefix='/api/v1/cron')


def _trigger_args():
    data = request.get_json(silent=True) or {}
    template_id = data.get('templateId')
    month = parse_int(data.get('month'), 'month')
    year = parse_int(data.get('year'), 'year')
    if not template_id or month is None or year is None:
        raise ValidationError(
            f"Template ID, month, and year are required. "
            f"Received: templateId={template_id}, month={month}, year={year}",
            title='Missing Required Fields',
        )
    return template_id, month, year


@cron_bp.route('/status', methods=['GET'])
@admin_required
def get_cron_job_status():
    return api_response(current_app.kpi_scheduler.status(), 'Cron job status retrieved successfully')


@cron_bp.route('/trigger-monthly-entries', methods=['POST'])
@admin_required
def trigger_monthly_entries():
    template_id, month, year = _trigger_args()
    result = current_app.kpi_scheduler.trigger_monthly_entries(template_id, month, year, current_actor())
    current_app.logger.info(f"Monthly entries triggered for {template_id} by {current_actor()} ({get_user_ip()})")
    return api_response(result, 'Monthly KPI entries generation triggered successfully')


@cron_bp.route('/trigger-monthly-reports', methods=['POST'])
@admin_required
def trigger_monthly_reports():
    template_id, month, year = _trigger_args()
    result = current_app.kpi_scheduler.trigger_monthly_reports(template_id, month, year, current_actor())
    current_app.logger.info(f"Monthly reports triggered for {template_id} by {current_actor()} ({get_user_ip()})")
    return api_response(result, 'Monthly reports generation triggered successfully')


@cron_bp.route('/restart', methods=['POST'])
@admin_required
def restart_cron_jobs():
    current_app.kpi_scheduler.restart()
    return api_response(current_app.kpi_scheduler.status(), 'Cron jobs restarted successfully')
