"""
요청 경로 밖에서 캐시를 디스크에 기록하는 백그라운드 작업자.

단일 워커 스레드 풀에 저장 작업을 제출하므로 조회/삽입 응답은 디스크 I/O를
기다리지 않습니다. 주기적 저장이 설정되면 별도 데몬 스레드가 간격마다
같은 워커로 저장을 요청합니다.
"""
from __future__ import annotations

import concurrent.futures
import logging
import threading
from typing import Callable, Optional

from answer_cache.cache_core.common.errors import CacheSaveError

logger = logging.getLogger(__name__)


class BackgroundFlusher:
    def __init__(self, flush: Callable[[], bool], interval_seconds: float = 0.0) -> None:
        """
        @param flush 저장 함수. 저장을 수행했으면 True를 반환한다.
        @param interval_seconds 주기적 저장 간격(초). 0이면 주기 저장을 하지 않는다.
        @returns None
        """
        self._flush = flush
        self._interval = interval_seconds
        self._executor: Optional[concurrent.futures.ThreadPoolExecutor] = None
        self._timer: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._lock = threading.Lock()

    def start(self) -> None:
        """주기적 저장 스레드를 시작합니다. 이미 실행 중이면 무시합니다."""
        with self._lock:
            if self._interval <= 0 or (self._timer is not None and self._timer.is_alive()):
                return
            self._stop.clear()
            self._timer = threading.Thread(target=self._run_periodic, name="cache-flusher", daemon=True)
            self._timer.start()
            logger.info("주기적 캐시 저장 시작: %.0f초 간격", self._interval)

    def submit(self) -> concurrent.futures.Future:
        """
        저장 작업을 백그라운드 워커에 제출합니다 (fire-and-forget).

        @returns 저장 결과(bool)를 담은 Future. 저장 실패는 로그로 보고되고 False가 된다.
        """
        with self._lock:
            if self._executor is None:
                self._executor = concurrent.futures.ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="cache-writer"
                )
            return self._executor.submit(self._run_flush)

    def stop(self, wait: bool = True) -> None:
        """
        @param wait 대기 중인 저장 작업의 완료를 기다릴지 여부.
        @returns None
        """
        self._stop.set()
        with self._lock:
            timer, self._timer = self._timer, None
            executor, self._executor = self._executor, None
        if timer is not None and wait:
            timer.join()
        if executor is not None:
            executor.shutdown(wait=wait)

    @property
    def running(self) -> bool:
        return self._timer is not None and self._timer.is_alive()

    def _run_periodic(self) -> None:
        while not self._stop.wait(self._interval):
            self._run_flush()

    def _run_flush(self) -> bool:
        try:
            return self._flush()
        except CacheSaveError as exc:
            logger.error("백그라운드 캐시 저장 실패: %s", exc)
            return False
