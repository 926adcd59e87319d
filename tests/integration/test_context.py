# =============================================================================
# tests/integration/test_context.py
# Integration Tests: runtime context over the mock backend
# =============================================================================

import pytest

from shop_core.config import ShopConfig
from shop_core.context import DEMO_EMPLOYEE_ID, DEMO_PASSWORD, build_context
from shop_core.data.models import Collection, Role
from shop_core.offline import RecordSale, SyncState


@pytest.fixture
def ctx(tmp_path):
    config = ShopConfig(use_mock_backend=True, cache_path=str(tmp_path / "boutique.db")).validate()
    ctx = build_context(config)
    yield ctx
    ctx.close()


class TestRuntimeContext:

    def test_admin_sees_demo_catalogue(self, ctx):
        user = ctx.session.sign_in("admin@boutique.local", DEMO_PASSWORD)

        engine = ctx.mount_dashboard(user)

        assert user.role is Role.ADMIN
        assert engine.sync_state is SyncState.SYNCED
        assert len(engine.state.records(Collection.BALANCES)) == 3
        assert engine.state.records(Collection.CATEGORIES)[0]["name"] == "Général"

    def test_employee_sale_shows_in_reports(self, ctx):
        user = ctx.session.sign_in("vendeur@boutique.local", DEMO_PASSWORD)
        engine = ctx.mount_dashboard(user)
        product = engine.state.records(Collection.PRODUCTS)[0]

        result = engine.submit(RecordSale(product["id"], 3, DEMO_EMPLOYEE_ID))

        assert result.success
        today = ctx.reports().today_sales().data
        assert today["count"] == 1
        assert today["revenue"] == 3000

    def test_remount_replaces_engine(self, ctx):
        user = ctx.session.sign_in("admin@boutique.local", DEMO_PASSWORD)
        first = ctx.mount_dashboard(user)

        second = ctx.mount_dashboard(user)

        assert ctx.engine is second
        assert first is not second

    def test_reports_need_mounted_dashboard(self, ctx):
        with pytest.raises(RuntimeError):
            ctx.reports()
