"""渲染实例池单元测试."""

import threading
from unittest.mock import MagicMock

import pytest

from placard.services.harness_pool import HarnessPool
from placard.utils.exceptions import PoolClosedError, PoolError, PoolExhaustedError


# ===================
# Fixtures
# ===================


@pytest.fixture
def created() -> list:
    """工厂创建过的实例."""
    return []


@pytest.fixture
def factory(created):
    """返回模拟渲染实例的工厂."""

    def _factory(harness_id: int):
        harness = MagicMock()
        harness.harness_id = harness_id
        created.append(harness)
        return harness

    return _factory


# ===================
# 测试
# ===================


class TestHarnessPool:
    """测试实例借出与归还."""

    def test_lazy_creation(self, factory, created):
        """测试按需创建实例."""
        pool = HarnessPool(factory, pool_size=3, acquire_timeout=0.1)
        assert pool.size == 0

        first = pool.checkout()
        second = pool.checkout()

        assert pool.size == 2
        assert [first.harness_id, second.harness_id] == [0, 1]

    def test_reuses_returned_instance(self, factory, created):
        """测试归还后复用同一实例."""
        pool = HarnessPool(factory, pool_size=2)
        harness = pool.checkout()
        pool.checkin(harness)

        assert pool.checkout() is harness
        assert len(created) == 1

    def test_checkin_resets(self, factory):
        """测试归还时复位."""
        pool = HarnessPool(factory, pool_size=1)
        with pool.harness() as harness:
            harness.reset.assert_not_called()
        harness.reset.assert_called_once()
        assert pool.idle_count == 1

    def test_exhausted(self, factory):
        """测试超时未获取到实例."""
        pool = HarnessPool(factory, pool_size=1, acquire_timeout=5)
        pool.checkout()
        with pytest.raises(PoolExhaustedError):
            pool.checkout(timeout=0.05)

    def test_waits_for_return(self, factory):
        """测试等待其他调用方归还."""
        pool = HarnessPool(factory, pool_size=1)
        harness = pool.checkout()
        timer = threading.Timer(0.05, pool.checkin, [harness])
        timer.start()

        assert pool.checkout(timeout=2) is harness
        timer.join()

    def test_failed_reset_drops_instance(self, factory):
        """测试复位失败的实例被丢弃."""
        pool = HarnessPool(factory, pool_size=1)
        harness = pool.checkout()
        harness.reset.side_effect = RuntimeError("broken")

        with pytest.raises(RuntimeError):
            pool.checkin(harness)

        assert pool.size == 0
        assert pool.checkout() is not harness

    def test_factory_failure(self):
        """测试实例启动失败转换为渲染池错误."""
        pool = HarnessPool(MagicMock(side_effect=OSError("no fonts")), pool_size=1)

        with pytest.raises(PoolError) as exc_info:
            pool.checkout()

        assert not isinstance(exc_info.value, PoolExhaustedError)
        assert "no fonts" in exc_info.value.message
        assert pool.size == 0

    def test_invalid_size(self, factory):
        """测试非法的池大小."""
        with pytest.raises(ValueError):
            HarnessPool(factory, pool_size=0)


class TestShutdown:
    """测试关闭."""

    def test_closes_all_and_rejects_checkout(self, factory, created):
        """测试关闭后释放所有实例并拒绝借出."""
        pool = HarnessPool(factory, pool_size=2)
        a = pool.checkout()
        pool.checkout()
        pool.checkin(a)

        pool.shutdown()

        assert pool.is_closed
        for harness in created:
            harness.close.assert_called_once()
        with pytest.raises(PoolClosedError):
            pool.checkout()

    def test_checkin_after_shutdown_closes(self, factory):
        """测试关闭后归还的实例直接释放."""
        pool = HarnessPool(factory, pool_size=1)
        harness = pool.checkout()
        pool.shutdown()
        harness.close.reset_mock()

        pool.checkin(harness)

        harness.close.assert_called_once()
        assert pool.idle_count == 0

    def test_close_failure_reraised(self, factory, created):
        """测试释放失败在全部释放后重新抛出."""
        pool = HarnessPool(factory, pool_size=2)
        pool.checkout()
        pool.checkout()
        created[0].close.side_effect = RuntimeError("close failed")

        with pytest.raises(RuntimeError, match="close failed"):
            pool.shutdown()
        created[1].close.assert_called_once()

    def test_shutdown_idempotent(self, factory):
        """测试重复关闭."""
        pool = HarnessPool(factory, pool_size=1)
        pool.shutdown()
        pool.shutdown()
        assert pool.is_closed
