import dataclasses
import logging
import os
from datetime import datetime

from flask import Blueprint, Flask, abort, current_app, jsonify, request

from app_models import db
from bootstrap import init_storage, init_storage_command
from config import config_by_name
from errors import NotFoundError, PersistenceError, ValidationError
from forms import validate_payload
from health import health_bp
from ledger import check_income_selection, record_expense, record_income, resolve_income_items
from persistence import RELATIONAL, create_persistence
from reporting import (
    NameIndex, expenses_by_cost_center, filter_by_date_range, financial_report,
    income_history, kpi_dashboard, section_teacher_name,
)
from sample_data import build_sample_data
from security import init_security
from store import COLLECTIONS, EntityStore

api_bp = Blueprint('api', __name__, url_prefix='/api')

# URL segment -> store collection
URL_COLLECTIONS = {
    'parents': 'parents',
    'students': 'students',
    'income-items': 'income_items',
    'teachers': 'teachers',
    'sections': 'sections',
    'users': 'users',
    'roles': 'roles',
    'cost-centers': 'cost_centers',
}


def get_store():
    return current_app.extensions['ledger_store']


def _collection(segment):
    collection = URL_COLLECTIONS.get(segment)
    if collection is None:
        abort(404)
    return collection


def _json_body():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError('Request body must be a JSON object')
    return payload


def _names():
    store = get_store()
    return NameIndex(store.all('parents'), store.all('students'))


def _income_row(transaction, names):
    row = transaction.to_dict()
    row['parentName'] = names.parent_name(transaction.parent_id)
    row['studentNames'] = names.student_names(transaction.student_ids)
    return row


def _master_row(collection, record):
    row = record.to_dict()
    if collection == 'sections':
        row['teacherName'] = section_teacher_name(record, get_store().all('teachers'))
    return row


# Master data

@api_bp.route('/<segment>', methods=['GET'])
def list_records(segment):
    collection = _collection(segment)
    records = get_store().find(collection, request.args.get('q', ''))
    return jsonify([_master_row(collection, record) for record in records])


@api_bp.route('/<segment>', methods=['POST'])
def create_record(segment):
    collection = _collection(segment)
    data = validate_payload(collection, _json_body())
    record_type = COLLECTIONS[collection][1]
    record = get_store().add(collection, record_type(**data))
    return jsonify(_master_row(collection, record)), 201


@api_bp.route('/<segment>/<record_id>', methods=['GET'])
def get_record(segment, record_id):
    collection = _collection(segment)
    return jsonify(_master_row(collection, get_store().require(collection, record_id)))


@api_bp.route('/<segment>/<record_id>', methods=['PUT'])
def update_record(segment, record_id):
    collection = _collection(segment)
    store = get_store()
    existing = store.require(collection, record_id)
    data = validate_payload(collection, _json_body())
    record = store.update(collection, dataclasses.replace(existing, **data))
    return jsonify(_master_row(collection, record))


@api_bp.route('/<segment>/<record_id>', methods=['DELETE'])
def delete_record(segment, record_id):
    collection = _collection(segment)
    get_store().delete(collection, record_id)
    return '', 204


# Income

@api_bp.route('/income', methods=['GET'])
def list_income():
    names = _names()
    return jsonify([_income_row(t, names) for t in get_store().all('income_transactions')])


@api_bp.route('/income', methods=['POST'])
def create_income():
    store = get_store()
    payload = _json_body()
    parent_id, student_ids, item_ids = (
        payload.get('parentId'), payload.get('studentIds'), payload.get('itemIds'))
    check_income_selection(parent_id, student_ids, item_ids)
    transaction = record_income(
        store,
        parent_id,
        student_ids,
        resolve_income_items(store, item_ids),
        logged_user=payload.get('loggedUser') or current_app.config['DEFAULT_LOGGED_USER'],
        date=payload.get('date'),
        receipt_image=payload.get('receiptImage'),
    )
    return jsonify(_income_row(transaction, _names())), 201


@api_bp.route('/income/history', methods=['GET'])
def income_history_view():
    names = _names()
    rows, summary = income_history(
        get_store().all('income_transactions'),
        names,
        search=request.args.get('search', ''),
        status=request.args.get('status', 'all'),
        date_range=request.args.get('range', 'all'),
        sort=request.args.get('sort', 'date'),
        order=request.args.get('order', 'desc'),
    )
    return jsonify({
        'transactions': [_income_row(t, names) for t in rows],
        'summary': summary,
    })


@api_bp.route('/income/<transaction_id>', methods=['GET'])
def get_income(transaction_id):
    transaction = get_store().require('income_transactions', transaction_id)
    return jsonify(_income_row(transaction, _names()))


@api_bp.route('/income/<transaction_id>/status', methods=['POST'])
def set_income_status(transaction_id):
    payload = request.get_json(silent=True) or {}
    status = payload.get('status', 'paid')
    transaction = get_store().set_income_status(transaction_id, status)
    return jsonify(_income_row(transaction, _names()))


# Expenses

@api_bp.route('/expenses', methods=['GET'])
def list_expenses():
    expenses = filter_by_date_range(
        get_store().all('expense_transactions'), request.args.get('range', 'all'))
    return jsonify([t.to_dict() for t in expenses])


@api_bp.route('/expenses', methods=['POST'])
def create_expense():
    payload = _json_body()
    items = payload.get('items') or []
    if not isinstance(items, list):
        raise ValidationError('items must be a list', ['items'])
    transaction = record_expense(
        get_store(),
        items,
        logged_user=payload.get('loggedUser') or current_app.config['DEFAULT_LOGGED_USER'],
        description=payload.get('description'),
        date=payload.get('date'),
        receipt_image=payload.get('receiptImage'),
    )
    return jsonify(transaction.to_dict()), 201


@api_bp.route('/expenses/cost-centers', methods=['GET'])
def expenses_per_cost_center():
    store = get_store()
    return jsonify(expenses_by_cost_center(
        store.all('expense_transactions'), store.all('cost_centers')))


# Reports

@api_bp.route('/reports', methods=['GET'])
def reports():
    store = get_store()
    names = _names()
    report = financial_report(
        store.all('income_transactions'),
        store.all('expense_transactions'),
        date_range=request.args.get('range', 'all'),
        type_filter=request.args.get('type', 'all'),
    )
    report['income'] = [_income_row(t, names) for t in report['income']]
    report['expenses'] = [t.to_dict() for t in report['expenses']]
    return jsonify(report)


@api_bp.route('/kpi', methods=['GET'])
def kpi():
    store = get_store()
    names = _names()
    dashboard = kpi_dashboard(
        store.all('income_transactions'),
        store.all('expense_transactions'),
        store.all('students'),
        monthly_target=current_app.config['MONTHLY_INCOME_TARGET'],
    )
    dashboard['recentTransactions'] = [
        _income_row(t, names) for t in dashboard['recentTransactions']
    ]
    return jsonify(dashboard)


def register_error_handlers(app):
    @app.errorhandler(ValidationError)
    def handle_validation_error(error):
        return jsonify(error.to_dict()), 400

    @app.errorhandler(NotFoundError)
    def handle_not_found(error):
        return jsonify({'error': str(error)}), 404

    @app.errorhandler(PersistenceError)
    def handle_persistence_error(error):
        app.logger.error('Storage failure: %s', error)
        return jsonify({'error': 'Storage unavailable, the change was not saved'}), 503

    @app.errorhandler(404)
    def handle_unknown_route(error):
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(405)
    def handle_bad_method(error):
        return jsonify({'error': 'Method not allowed'}), 405


def configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s [%(name)s] %(message)s')
    logging.getLogger().setLevel(level)
    app.logger.setLevel(level)


def create_app(config_object=None):
    """Build the application with one hydrated EntityStore"""
    if config_object is None:
        config_object = os.environ.get('FLASK_CONFIG', 'default')
    if isinstance(config_object, str):
        config_object = config_by_name[config_object]

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object)
    config_object.init_app(app)
    configure_logging(app)

    if app.config['PERSISTENCE_BACKEND'] == RELATIONAL:
        db.init_app(app)

    seed = build_sample_data(datetime.now()) if app.config['SEED_SAMPLE_DATA'] else None
    store = EntityStore(create_persistence(app.config), seed=seed)
    app.extensions['ledger_store'] = store
    init_storage(app)

    app.register_blueprint(api_bp)
    app.register_blueprint(health_bp)
    init_security(app)
    register_error_handlers(app)
    app.cli.add_command(init_storage_command)

    app.logger.info('SchoolFee Ledger started with %s backend', store.persistence.name)
    return app
