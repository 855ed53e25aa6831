"""
Пример пула на процессах с конфигурацией и проверкой здоровья.
"""

import json

from job_pool import PoolManager, Config
from job_pool.core.graceful_shutdown import ShutdownConfig
from job_pool.utils import HealthChecker, collect_system_metrics


def main(config: Config = None):
    """Запуск пула процессов по конфигурации."""
    print("=== Пул исполнителей на процессах ===\n")

    config = config or Config(
        pool_size=2,
        unit_type="process",
        location="examples.jobs",
        shutdown=ShutdownConfig(timeout=5.0)
    )

    with PoolManager.from_config(config) as pool:
        futures = [pool.submit_job('sum_squares', {'n': 200_000 + i * 50_000}) for i in range(4)]
        for future in futures:
            print(f"   {future.job_name}: {future.result(timeout=60)}")

        for unit in pool.get_units():
            print(f"   {unit.id}: {unit.handle.resource_usage()}")

        health = HealthChecker(pool).check_health()
        print(f"\nПул здоров: {health.is_healthy}")
        for warning in health.warnings:
            print(f"   Предупреждение: {warning}")

        print("\n=== Системные метрики ===")
        print(json.dumps(collect_system_metrics().to_dict(), indent=2))

    print("\nПул исполнителей остановлен")


if __name__ == "__main__":
    main()
