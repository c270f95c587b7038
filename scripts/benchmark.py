"""HTTP benchmark for Conduit API endpoints."""
import argparse
import asyncio
import statistics
import time

import httpx

DEFAULT_BASE_URL = "http://localhost:8000"


def build_endpoints(slug: str | None, author: str | None) -> list[tuple[str, str]]:
    endpoints = [
        ("GET /api/articles", "/api/articles"),
        ("GET /api/articles?limit=50&offset=100", "/api/articles?limit=50&offset=100"),
        ("GET /api/articles?tag=python", "/api/articles?tag=python"),
    ]
    if author:
        endpoints.append(("GET /api/articles?author={username}", f"/api/articles?author={author}"))
        endpoints.append(("GET /api/articles?favorited={username}", f"/api/articles?favorited={author}"))
    if slug:
        endpoints.append(("GET /api/articles/{slug}", f"/api/articles/{slug}"))
    endpoints.append(("GET /api/metrics", "/api/metrics"))
    endpoints.append(("GET /health", "/health"))
    return endpoints


async def benchmark_endpoint(client: httpx.AsyncClient, name: str, path: str, iterations: int = 50):
    times = []
    query_counts = []
    errors = 0

    # Warmup
    for _ in range(3):
        try:
            await client.get(path)
        except httpx.HTTPError:
            pass

    for _ in range(iterations):
        try:
            start = time.perf_counter()
            resp = await client.get(path)
            elapsed = (time.perf_counter() - start) * 1000

            if resp.status_code == 200:
                times.append(elapsed)
                qc = resp.headers.get("X-Query-Count")
                if qc is not None:
                    query_counts.append(int(qc))
            else:
                errors += 1
        except httpx.HTTPError:
            errors += 1

    if not times:
        return {"name": name, "error": f"All {iterations} requests failed"}

    ordered = sorted(times)
    return {
        "name": name,
        "avg_ms": round(statistics.mean(times), 2),
        "p50_ms": round(ordered[len(ordered) // 2], 2),
        "p95_ms": round(ordered[int(len(ordered) * 0.95)], 2),
        "p99_ms": round(ordered[int(len(ordered) * 0.99)], 2),
        "queries": round(statistics.mean(query_counts), 1) if query_counts else "N/A",
        "errors": errors,
    }


async def run_benchmark(base_url: str, iterations: int = 50):
    print("=" * 80)
    print(f"Conduit API Benchmark: {iterations} iterations per endpoint")
    print(f"Target: {base_url}")
    print("=" * 80)

    async with httpx.AsyncClient(base_url=base_url) as client:
        try:
            resp = await client.get("/health")
        except httpx.HTTPError as exc:
            print(f"ERROR: Cannot connect to {base_url}: {exc}")
            return
        if resp.status_code != 200:
            print(f"ERROR: Health check failed ({resp.status_code})")
            return
        print(f"Health: {resp.json()}")

        # Pick a real slug and author from the first page.
        first_page = (await client.get("/api/articles?limit=1")).json()["articles"]
        slug = first_page[0]["slug"] if first_page else None
        author = first_page[0]["author"]["username"] if first_page else None

        print()
        print(f"{'Endpoint':<45} {'Avg':>8} {'P50':>8} {'P95':>8} {'P99':>8} {'Queries':>8} {'Err':>4}")
        print("-" * 80)

        for name, path in build_endpoints(slug, author):
            result = await benchmark_endpoint(client, name, path, iterations)
            if "error" in result:
                print(f"{result['name']:<45} {'ERROR':>8}")
                continue
            print(
                f"{result['name']:<45} "
                f"{result['avg_ms']:>7.1f}ms "
                f"{result['p50_ms']:>7.1f}ms "
                f"{result['p95_ms']:>7.1f}ms "
                f"{result['p99_ms']:>7.1f}ms "
                f"{str(result['queries']):>8} "
                f"{result['errors']:>4}"
            )

        print("-" * 80)
        print("\nBenchmark complete.")


def main():
    parser = argparse.ArgumentParser(description="Benchmark the Conduit API")
    parser.add_argument("-n", "--iterations", type=int, default=50, help="Iterations per endpoint")
    parser.add_argument("--base-url", default=DEFAULT_BASE_URL, help="API base URL")
    args = parser.parse_args()
    asyncio.run(run_benchmark(args.base_url, args.iterations))


if __name__ == "__main__":
    main()
