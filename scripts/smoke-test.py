#!/usr/bin/env python3
"""
Smoke test for powgate staging/production deployments.

This script is intentionally a deploy guardrail:
- Fast (a few seconds at the minimum difficulty)
- Deterministic where possible
- Actionable failures (step name, HTTP status/body preview)

Flow (default):
1. Health check
2. Challenge issuance (POST /challenge at minimum difficulty)
3. Solve + verify (POST /verify, expect success)
4. Tampered verify (maxNumber changed, expect invalid-token)
5. Malformed verify (token missing fields, expect 400 malformed)

Usage:
    ./scripts/smoke-test.py https://staging.example.com
    ./scripts/smoke-test.py https://staging.example.com --health-only
"""

import argparse
import hashlib
import json
import random
import sys
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen


class ApiError(RuntimeError):
    def __init__(self, status_code: int, body: str):
        super().__init__(f"API error {status_code}: {body}")
        self.status_code = status_code
        self.body = body


SMOKE_APP_ID = "smoke-test"
SMOKE_DIFFICULTY = 1  # clamped up to the deployment's minimum
SMOKE_TTL_SECONDS = 120
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_RETRIES = 2
DEFAULT_RETRY_BACKOFF_SECONDS = 0.5
# Used when surfacing API error bodies (text) for debugging without log spam.
MAX_ERROR_BODY_CHARS = 10_000
MAX_BACKOFF_SECONDS = 4.0

HASHLIB_NAMES = {"SHA-256": "sha256", "SHA-384": "sha384", "SHA-512": "sha512"}


def log(msg: str) -> None:
    """Print timestamped log message."""
    print(f"[{datetime.now().strftime('%H:%M:%S')}] {msg}", flush=True)


def _decode_limited(value: bytes, max_chars: int = MAX_ERROR_BODY_CHARS) -> str:
    decoded = value.decode("utf-8", errors="replace")
    if len(decoded) <= max_chars:
        return decoded
    return decoded[:max_chars] + "…"


def _is_retryable_status(status_code: int) -> bool:
    return status_code in {408, 425, 429, 502, 503, 504, 522, 524}


@dataclass
class HttpClient:
    base_url: str
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    retries: int = DEFAULT_RETRIES
    retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        body: bytes | None = None,
        timeout_seconds: float | None = None,
    ) -> tuple[int, bytes]:
        effective_timeout = self.timeout_seconds if timeout_seconds is None else timeout_seconds
        req_headers = headers or {}

        max_attempts = max(1, self.retries + 1)
        for attempt in range(1, max_attempts + 1):
            try:
                request = Request(url, data=body, headers=req_headers, method=method)
                try:
                    with urlopen(request, timeout=effective_timeout) as response:
                        return response.getcode(), response.read()
                except HTTPError as e:
                    error_body = e.read() if e.fp else b""
                    if attempt < max_attempts and _is_retryable_status(e.code):
                        self._sleep_backoff(attempt)
                        continue
                    return e.code, error_body
            except (URLError, TimeoutError) as e:
                if attempt < max_attempts:
                    self._sleep_backoff(attempt)
                    continue
                raise RuntimeError(f"Network error after {attempt} attempts: {e}") from e

        raise RuntimeError(f"Retries exhausted for {method} {url}")

    def api_json(
        self,
        path: str,
        data: dict[str, Any],
        *,
        expect_status: int = 200,
    ) -> dict[str, Any]:
        url = f"{self.base_url}/api/v1{path}"
        status, body = self.request(
            "POST",
            url,
            headers={"Content-Type": "application/json"},
            body=json.dumps(data).encode(),
        )
        if status != expect_status:
            raise ApiError(status, _decode_limited(body))
        try:
            return json.loads(body.decode())
        except json.JSONDecodeError as e:
            raise RuntimeError(f"Invalid JSON response from POST {path}: {body[:200]!r}") from e

    def _sleep_backoff(self, attempt: int) -> None:
        base = self.retry_backoff_seconds * (2 ** (attempt - 1))
        jitter = random.random() * self.retry_backoff_seconds
        time.sleep(min(MAX_BACKOFF_SECONDS, base + jitter))


def wait_for_health(client: HttpClient, max_attempts: int = 30, delay: float = 2.0) -> bool:
    """Wait for /health to return healthy status."""
    url = f"{client.base_url}/health"

    for attempt in range(1, max_attempts + 1):
        try:
            status, body = client.request("GET", url, timeout_seconds=10.0)
            if status == 200:
                data = json.loads(body.decode())
                if data.get("status") == "healthy":
                    log(f"Health check passed (attempt {attempt})")
                    return True
        except (json.JSONDecodeError, RuntimeError):
            pass

        if attempt < max_attempts:
            time.sleep(delay)

    return False


def solve_challenge(challenge: dict[str, Any]) -> int:
    """
    Brute-force a challenge.

    Finds number where HASH(salt || decimal(number)) equals targetHash.
    """
    digest_name = HASHLIB_NAMES[challenge["algorithm"]]
    salt = challenge["salt"]
    target = challenge["targetHash"]
    start_time = time.time()

    for number in range(challenge["maxNumber"]):
        if hashlib.new(digest_name, f"{salt}{number}".encode()).hexdigest() == target:
            elapsed = max(time.time() - start_time, 1e-6)
            log(f"Challenge solved: number={number} ({elapsed:.2f}s, {number/elapsed:.0f} H/s)")
            return number

    raise RuntimeError(f"No solution below maxNumber={challenge['maxNumber']}")


@dataclass
class SmokeContext:
    client: HttpClient
    max_health_attempts: int

    challenge: dict[str, Any] | None = None
    number: int | None = None

    def require_challenge(self) -> dict[str, Any]:
        if self.challenge is None:
            raise RuntimeError("Missing challenge (step ordering bug)")
        return self.challenge

    def require_number(self) -> int:
        if self.number is None:
            raise RuntimeError("Missing number (step ordering bug)")
        return self.number


@dataclass(frozen=True)
class Step:
    name: str
    run: Callable[[SmokeContext], None]


@dataclass(frozen=True)
class StepResult:
    name: str
    status: str  # passed|failed
    seconds: float
    detail: str | None = None


def _print_summary(results: list[StepResult], total_seconds: float) -> None:
    log("Summary:")
    for result in results:
        suffix = f" - {result.detail}" if result.detail else ""
        log(f"  {result.status.upper():7} {result.name} ({result.seconds:.2f}s){suffix}")
    log(f"Total: {total_seconds:.2f}s")


def run_steps(ctx: SmokeContext, steps: list[Step]) -> bool:
    results: list[StepResult] = []
    overall_start = time.time()

    for step in steps:
        log(f"STEP: {step.name}")
        start = time.time()
        try:
            step.run(ctx)
        except Exception as e:
            elapsed = time.time() - start
            results.append(StepResult(step.name, "failed", elapsed, str(e)))
            _print_summary(results, time.time() - overall_start)
            return False

        elapsed = time.time() - start
        results.append(StepResult(step.name, "passed", elapsed))
        log(f"OK: {step.name} ({elapsed:.2f}s)")

    _print_summary(results, time.time() - overall_start)
    return True


def step_health(ctx: SmokeContext) -> None:
    log(f"Checking health: {ctx.client.base_url}/health")
    if not wait_for_health(ctx.client, max_attempts=ctx.max_health_attempts):
        raise RuntimeError("Health check failed")


def step_issue_challenge(ctx: SmokeContext) -> None:
    challenge = ctx.client.api_json(
        "/challenge",
        {
            "appId": SMOKE_APP_ID,
            "clientHints": {"difficulty": SMOKE_DIFFICULTY, "expires": SMOKE_TTL_SECONDS},
        },
    )
    missing = {"algorithm", "salt", "signature", "targetHash", "expires", "maxNumber"} - set(
        challenge
    )
    if missing:
        raise RuntimeError(f"Challenge missing fields: {sorted(missing)}")
    if challenge["expires"] <= time.time():
        raise RuntimeError(f"Challenge already expired: expires={challenge['expires']}")
    log(f"Challenge issued: algorithm={challenge['algorithm']} maxNumber={challenge['maxNumber']}")
    ctx.challenge = challenge


def step_verify_solution(ctx: SmokeContext) -> None:
    challenge = ctx.require_challenge()
    ctx.number = solve_challenge(challenge)
    result = ctx.client.api_json(
        "/verify", {"appId": SMOKE_APP_ID, "token": {**challenge, "number": ctx.number}}
    )
    if result.get("success") is not True:
        raise RuntimeError(f"Expected success, got {result}")


def step_verify_tampered(ctx: SmokeContext) -> None:
    challenge = dict(ctx.require_challenge())
    challenge["maxNumber"] += 1
    result = ctx.client.api_json(
        "/verify", {"appId": SMOKE_APP_ID, "token": {**challenge, "number": ctx.require_number()}}
    )
    if result.get("success") is not False or result.get("reason") != "invalid-token":
        raise RuntimeError(f"Expected invalid-token, got {result}")


def step_verify_malformed(ctx: SmokeContext) -> None:
    result = ctx.client.api_json(
        "/verify",
        {"appId": SMOKE_APP_ID, "token": {"number": 0}},
        expect_status=400,
    )
    if result.get("reason") != "malformed":
        raise RuntimeError(f"Expected malformed, got {result}")


def main() -> int:
    parser = argparse.ArgumentParser(description="powgate smoke test")
    parser.add_argument("base_url", help="Base URL (e.g., https://staging.example.com)")
    parser.add_argument(
        "--health-only",
        action="store_true",
        help="Only run health check, skip full flow",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT_SECONDS,
        help=f"HTTP timeout seconds (default: {DEFAULT_TIMEOUT_SECONDS:g})",
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=DEFAULT_RETRIES,
        help=f"Retries for transient failures (default: {DEFAULT_RETRIES})",
    )
    parser.add_argument(
        "--max-health-attempts",
        type=int,
        default=30,
        help="Max health check attempts (default: 30)",
    )
    args = parser.parse_args()

    try:
        base_url = args.base_url.rstrip("/")
        client = HttpClient(base_url=base_url, timeout_seconds=args.timeout, retries=args.retries)
        ctx = SmokeContext(client=client, max_health_attempts=args.max_health_attempts)

        steps: list[Step] = [Step("health", step_health)]
        if args.health_only:
            log("Health-only mode: skipping full flow")
        else:
            steps.extend(
                [
                    Step("issue challenge", step_issue_challenge),
                    Step("verify solution", step_verify_solution),
                    Step("verify tampered", step_verify_tampered),
                    Step("verify malformed", step_verify_malformed),
                ]
            )

        ok = run_steps(ctx, steps)
        return 0 if ok else 1
    except Exception as e:
        log(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
