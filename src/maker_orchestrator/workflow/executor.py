"""Concurrent fan-out of independent oracle attempts for one step."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait

from maker_orchestrator.core.errors import TransportError
from maker_orchestrator.llm.oracle import Oracle

from .contracts import Attempt, StepContract

logger = logging.getLogger(__name__)


class AttemptExecutor:
    """Issues k oracle invocations for a contract and joins them at one barrier.

    Each invocation gets the rendered contract and nothing else: no prior
    attempts, no task history. Invocations that miss the deadline, or that keep
    failing at the transport layer, are absent from the result rather than
    errors; they still count toward the k used for the quorum.
    """

    def __init__(
        self,
        oracle: Oracle,
        *,
        max_workers: int = 16,
        transport_retries: int = 2,
        transport_backoff_seconds: float = 0.25,
    ) -> None:
        """Initialize the executor.

        Args:
            oracle: Stateless oracle invoked once per attempt.
            max_workers: Size of the reusable worker pool.
            transport_retries: Retries of one invocation after a TransportError.
            transport_backoff_seconds: Base delay between transport retries.
        """
        if max_workers < 1:
            raise ValueError("max_workers must be positive")
        self._oracle = oracle
        self._max_workers = max_workers
        self._transport_retries = transport_retries
        self._backoff = transport_backoff_seconds
        self._pool_lock = threading.Lock()
        self._pool = self._new_pool()

    def _new_pool(self) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="maker-attempt")

    def _replace_pool(self, stuck: int) -> None:
        # A running call cannot be cancelled, so it keeps its worker. Abandon the
        # pool to those calls and give later rounds a full set of fresh workers.
        with self._pool_lock:
            old, self._pool = self._pool, self._new_pool()
        old.shutdown(wait=False, cancel_futures=True)
        logger.warning("Worker pool replaced after stuck attempts", extra={"stuck": stuck})

    def __enter__(self) -> AttemptExecutor:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        with self._pool_lock:
            pool = self._pool
        pool.shutdown(wait=False, cancel_futures=True)

    def _invoke(self, prompt: str, schema_hint: str, index: int, deadline: float) -> Attempt | None:
        started = time.monotonic()
        failures = 0
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            try:
                raw = self._oracle.invoke(prompt, schema_hint, remaining)
            except TransportError as e:
                failures += 1
                if failures > self._transport_retries:
                    logger.warning(
                        "Attempt dropped after transport failures",
                        extra={"attempt_index": index, "failures": failures, "error": str(e)},
                    )
                    return None
                delay = min(self._backoff * (2 ** (failures - 1)), deadline - time.monotonic())
                if delay > 0:
                    time.sleep(delay)
                continue
            return Attempt(index=index, raw=raw, duration_seconds=time.monotonic() - started)

    def run(self, contract: StepContract, k: int, timeout: float) -> tuple[Attempt, ...]:
        """Run k independent attempts and wait for them at a single join barrier.

        Args:
            contract: The step contract; the only input each attempt receives.
            k: Number of attempts to issue.
            timeout: Per-invocation deadline in seconds.

        Returns:
            Attempts that produced output, ordered by attempt index.
        """
        if k < 1:
            raise ValueError("k must be at least 1")
        if k > self._max_workers:
            logger.warning(
                "k exceeds worker pool; some attempts will queue",
                extra={"k": k, "max_workers": self._max_workers},
            )

        prompt = contract.render_prompt()
        schema_hint = contract.schema.describe()
        deadline = time.monotonic() + timeout
        with self._pool_lock:
            pool = self._pool
        futures: list[Future[Attempt | None]] = [
            pool.submit(self._invoke, prompt, schema_hint, index, deadline)
            for index in range(k)
        ]

        done, not_done = wait(futures, timeout=timeout)

        stuck = sum(1 for future in not_done if not future.cancel())
        if not_done:
            logger.warning(
                "Attempts timed out and were discarded",
                extra={"step_id": contract.step_id, "timed_out": len(not_done), "k": k},
            )
        if stuck:
            self._replace_pool(stuck)

        attempts = [f.result() for f in futures if f in done]
        return tuple(sorted((a for a in attempts if a is not None), key=lambda a: a.index))
