# src/core/location/throttle.py
"""
Троттлинг записи геолокации водителей.

Окно записи и кэш последних позиций живут в Redis, поэтому все процессы
API делят одно окно на ключ (водитель, бронирование).
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from redis.exceptions import RedisError

from src.common.constants import TypeMsg
from src.common.errors import PersistenceError
from src.common.logger import log_error, log_info, log_warning
from src.core.location.models import CachedLocation, LocationUpdate, LocationWriteResult
from src.core.location.repository import LocationRepository
from src.infra.redis_client import RedisClient


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LocationThrottle:
    """
    Принимает отчёты о позиции и пишет в БД не чаще раза в min_interval
    на ключ (водитель, бронирование или idle). Кэш всегда хранит
    последний отчёт.

    Жизненный цикл: start() запускает фоновую очистку кэша, stop() её
    останавливает. Без start() троттлинг работает, кэш чистится только TTL.
    """

    PERSIST_PREFIX = "location:persist"
    CACHE_PREFIX = "location:cache"
    LATEST_PREFIX = "location:driver"
    INDEX_KEY = "location:index"

    def __init__(
        self,
        redis: RedisClient,
        repository: LocationRepository,
        min_interval: int = 30,
        cache_ttl: int = 300,
        sweep_interval: int = 60,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._redis = redis
        self._repo = repository
        self._min_interval = min_interval
        self._cache_ttl = cache_ttl
        self._sweep_interval = sweep_interval
        self._clock = clock

        self._task: asyncio.Task | None = None
        self._running = False

    # =========================================================================
    # ЖИЗНЕННЫЙ ЦИКЛ
    # =========================================================================

    async def start(self) -> None:
        """Запустить фоновую очистку кэша."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._sweep_loop())
        await log_info(
            f"LocationThrottle запущен: окно {self._min_interval}с, TTL кэша {self._cache_ttl}с",
            type_msg=TypeMsg.DEBUG,
        )

    async def stop(self) -> None:
        """Остановить фоновую очистку."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    @property
    def running(self) -> bool:
        return self._running

    async def _sweep_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self._sweep_interval)
                await self.sweep()
            except asyncio.CancelledError:
                break
            except Exception as e:
                await log_error(f"Ошибка очистки кэша геолокации: {e}", exc_info=True)

    async def sweep(self) -> int:
        """Удаляет записи кэша старше cache_ttl. Возвращает число удалённых."""
        cutoff = (self._clock() - timedelta(seconds=self._cache_ttl)).timestamp()
        stale = await self._redis.zrangebyscore(self.INDEX_KEY, "-inf", cutoff)
        if not stale:
            return 0

        await self._redis.delete(*(f"{self.CACHE_PREFIX}:{member}" for member in stale))
        await self._redis.zrem(self.INDEX_KEY, *stale)
        await log_info(f"Очищено записей кэша геолокации: {len(stale)}", type_msg=TypeMsg.DEBUG)
        return len(stale)

    # =========================================================================
    # ЗАПИСЬ
    # =========================================================================

    @staticmethod
    def scope_key(driver_id: str, booking_id: Optional[str]) -> str:
        return f"{driver_id}:{booking_id or 'idle'}"

    async def update_driver_location(self, driver_id: str, update: LocationUpdate) -> LocationWriteResult:
        """
        Принимает отчёт водителя.

        В БД пишется первый отчёт окна, остальные только обновляют кэш.
        Ошибки записи в БД логируются и не прерывают вызывающего.
        """
        now = self._clock()
        scope = self.scope_key(driver_id, update.booking_id)

        persisted = False
        if await self._acquire_window(scope):
            try:
                await self._repo.save_sample(driver_id, update, now)
                persisted = True
            except PersistenceError as e:
                await log_warning(
                    f"Геолокация водителя {driver_id} не записана: {e.message}",
                    extra={"driver_id": driver_id, "booking_id": update.booking_id},
                )
                # Следующий отчёт снова попробует записать
                await self._release_window(scope)

        await self._cache(scope, CachedLocation(
            driver_id=driver_id,
            booking_id=update.booking_id,
            coordinates=update.coordinates,
            status=update.status,
            reported_at=now,
        ))

        return LocationWriteResult(
            driver_id=driver_id,
            booking_id=update.booking_id,
            coordinates=update.coordinates,
            persisted=persisted,
            reported_at=now,
        )

    async def get_cached(self, driver_id: str) -> Optional[CachedLocation]:
        """Последний отчёт водителя из кэша (по любому бронированию)."""
        try:
            return await self._redis.get_model(f"{self.LATEST_PREFIX}:{driver_id}", CachedLocation)
        except RedisError as e:
            await log_warning(f"Кэш геолокации недоступен: {e}")
            return None

    # =========================================================================
    # ВНУТРЕННЕЕ
    # =========================================================================

    async def _acquire_window(self, scope: str) -> bool:
        """True если окно свободно и запись в БД разрешена."""
        try:
            return await self._redis.set(
                f"{self.PERSIST_PREFIX}:{scope}",
                self._clock().isoformat(),
                ttl=self._min_interval,
                nx=True,
            )
        except RedisError as e:
            # Без Redis пишем каждый отчёт
            await log_warning(f"Окно троттлинга недоступно, запись без ограничения: {e}")
            return True

    async def _release_window(self, scope: str) -> None:
        try:
            await self._redis.delete(f"{self.PERSIST_PREFIX}:{scope}")
        except RedisError as e:
            await log_warning(f"Не удалось освободить окно троттлинга {scope}: {e}")

    async def _cache(self, scope: str, entry: CachedLocation) -> None:
        try:
            await self._redis.set_model(f"{self.CACHE_PREFIX}:{scope}", entry, ttl=self._cache_ttl)
            await self._redis.set_model(f"{self.LATEST_PREFIX}:{entry.driver_id}", entry, ttl=self._cache_ttl)
            await self._redis.zadd(self.INDEX_KEY, {scope: entry.reported_at.timestamp()})
        except RedisError as e:
            await log_warning(f"Кэш геолокации не обновлён для {scope}: {e}")
