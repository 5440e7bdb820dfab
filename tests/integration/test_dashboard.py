"""
Integration tests for the dashboard figures, demo data and CLI commands.
"""

from datetime import timedelta
from decimal import Decimal

from poultry_ledger.services.dashboard_service import RETAIL_BUCKET, get_dashboard_summary, serialize_summary
from poultry_ledger.services.demo_data import seed_demo_data


class TestDemoData:

    def test_seed_loads_everything_once(self, session, store, now):
        assert seed_demo_data(session, now=now) is True
        assert seed_demo_data(session, now=now) is False

        snapshot = store.read_snapshot()
        assert len(snapshot.products) == 6
        assert len(snapshot.customers) == 4
        assert [order.id for order in snapshot.orders] == ['ORD-001', 'ORD-002', 'ORD-003', 'ORD-004']
        assert store.get_order('ORD-001').payments[0].note == 'Đặt cọc'

    def test_seed_skipped_when_catalog_exists(self, session, store, catalog):
        assert seed_demo_data(session) is False
        assert store.list_orders() == []


class TestDashboardSummary:

    def test_demo_figures(self, session, now):
        seed_demo_data(session, now=now)

        summary = get_dashboard_summary(session, now=now)

        assert summary['total_revenue'] == Decimal('11950000')
        assert summary['cash_in'] == Decimal('6500000')
        assert summary['total_debt'] == Decimal('5450000')
        assert summary['total_orders'] == 4
        assert summary['today_revenue'] == Decimal('9500000')
        assert summary['low_stock_count'] == 0
        assert summary['top_product'] == {'product_id': '2', 'name': 'Gà CP Lai Chọi', 'quantity': 100}
        assert [entry['name'] for entry in summary['sales_breakdown']] == [
            'Trại gà Chú Tư', 'Đại lý Anh Ba', RETAIL_BUCKET,
        ]
        assert summary['category_revenue'] == {
            'Gà': Decimal('10700000'),
            'Vịt': Decimal('910000'),
            'Bồ câu': Decimal('500000'),
        }

    def test_custom_day_window(self, session, now):
        seed_demo_data(session, now=now)

        summary = get_dashboard_summary(session, now=now, start_dt=now - timedelta(days=40),
                                        end_dt=now - timedelta(days=1))

        assert summary['today_revenue'] == Decimal('500000')

    def test_empty_ledger(self, session, now):
        summary = get_dashboard_summary(session, now=now)

        assert summary['total_revenue'] == Decimal('0')
        assert summary['top_product'] is None
        assert summary['sales_breakdown'] == [{'name': RETAIL_BUCKET, 'value': Decimal('0')}]

    def test_serialized_amounts_are_strings(self, session, now):
        seed_demo_data(session, now=now)

        payload = serialize_summary(get_dashboard_summary(session, now=now))

        assert Decimal(payload['total_debt']) == Decimal('5450000')
        assert isinstance(payload['sales_breakdown'][0]['value'], str)
        assert isinstance(payload['category_revenue']['Gà'], str)


class TestCliCommands:

    def test_seed_demo(self, app, store):
        result = app.test_cli_runner().invoke(args=['seed-demo'])

        assert result.exit_code == 0
        assert 'Demo data loaded' in result.output
        assert len(store.list_products()) == 6

    def test_aging_report(self, app, session):
        seed_demo_data(session)

        result = app.test_cli_runner().invoke(args=['aging-report'])

        assert result.exit_code == 0
        assert 'Debt aging as of' in result.output
        assert '>60 days' in result.output
        assert '950.000 ₫' in result.output

    def test_link_customers(self, app, store, registered_agency, order_factory, days_ago):
        store.write_atomic(orders=[order_factory('ORD-1', 1000, days_ago(1), customer_name='Đại lý Anh Ba')])

        result = app.test_cli_runner().invoke(args=['link-customers'])

        assert result.exit_code == 0
        assert 'Linked 1 order(s)' in result.output
        assert store.get_order('ORD-1').customer_id == registered_agency.id
