"""Tests for the periodic catalog sync job."""

import asyncio
from datetime import timedelta

from ppob_chat import dependencies
from ppob_chat.config import settings
from ppob_chat.models.products import RawUpstreamProduct
from ppob_chat.services import scheduler as scheduler_module
from ppob_chat.services.scheduler import (
    get_scheduler,
    run_scheduled_catalog_sync,
    scheduler_db_path,
    shutdown_scheduler,
    start_scheduler,
)


def test_scheduler_db_sits_beside_main_db():
    assert scheduler_db_path("./data/ppob_chat.db").endswith("data/ppob_chat_scheduler.db")


def test_zero_interval_disables_timer(monkeypatch):
    monkeypatch.setattr(settings, "catalog_sync_interval_minutes", 0)
    assert start_scheduler() is False
    assert get_scheduler() is None


def test_start_scheduler_registers_sync_job(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "database_path", str(tmp_path / "ppob_chat.db"))
    monkeypatch.setattr(settings, "catalog_sync_interval_minutes", 15)
    monkeypatch.setattr(scheduler_module, "_scheduler", None)

    async def run():
        assert start_scheduler() is True
        try:
            timer = get_scheduler()
            assert timer.running
            job = timer.get_job()
            assert job.trigger.interval == timedelta(minutes=15)
            assert job.func is run_scheduled_catalog_sync
        finally:
            shutdown_scheduler(wait=False)
        assert get_scheduler() is None

    asyncio.run(run())
    assert (tmp_path / "ppob_chat_scheduler.db").exists()


def test_scheduled_job_syncs_through_container(container, reseller, monkeypatch):
    monkeypatch.setattr(dependencies, "_container", container)
    reseller.catalog = [RawUpstreamProduct(
        buyer_sku_code="TRI5", product_name="Tri 5.000", category="Pulsa", brand="TRI", price=5_300,
    )]

    asyncio.run(run_scheduled_catalog_sync())

    product = asyncio.run(container.catalog.get_by_id("TRI5"))
    assert product.provider == "tri"
    assert product.admin_fee == 750
