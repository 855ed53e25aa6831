"""
Базовый пример использования пула исполнителей.
"""

from job_pool import PoolManager, ThreadUnit, JobError, FaultError, setup_logging


def main():
    """Основная функция с примерами использования."""
    print("=== Базовый пример использования пула исполнителей ===\n")

    setup_logging(level="WARNING")

    with PoolManager(ThreadUnit, pool_size=2, location="examples.jobs") as pool:
        print(f"Пул запущен с {pool.get_unit_count()} исполнителями")

        # Пример 1: Задача с прогрессом
        print("\n1. Задача с прогрессом:")
        future = pool.submit_job('downcase_words', {'words': ['Hello', 'Job', 'POOL']})
        future.add_progress_callback(lambda ratio: print(f"   Прогресс: {ratio:.0%}"))
        print(f"   Результат: {future.result(timeout=10)}")

        # Пример 2: Задач больше, чем исполнителей
        print("\n2. Очередь задач:")
        futures = [pool.submit_job('double', {'n': n}) for n in range(6)]
        print(f"   В очереди: {pool.get_queue_size()}")
        print(f"   Результаты: {[f.result(timeout=10) for f in futures]}")

        # Пример 3: Ошибка задачи
        print("\n3. Ошибка задачи:")
        try:
            pool.submit_job('downcase_words', {'words': 'not a list'}).result(timeout=10)
        except JobError as e:
            print(f"   Задача завершилась с ошибкой: {e}")

        # Пример 4: Сбой исполнителя и замена
        print("\n4. Сбой исполнителя:")
        try:
            pool.submit_job('explode').result(timeout=10)
        except FaultError as e:
            print(f"   Исполнитель {e.unit_id} упал: {e.reason}")
        print(f"   После замены: {pool.submit_job('double', {'n': 21}).result(timeout=10)}")
        print(f"   Исполнители: {[unit.id for unit in pool.get_units()]}")

        print("\n=== Метрики пула ===")
        metrics = pool.get_metrics()
        print(f"Всего задач отправлено: {metrics['total_jobs_submitted']}")
        print(f"Задач завершено: {metrics['total_jobs_completed']}")
        print(f"Задач с ошибками: {metrics['total_jobs_failed']}")
        print(f"Задач прервано сбоем: {metrics['total_jobs_faulted']}")
        print(f"Заменено исполнителей: {metrics['total_units_replaced']}")
        print(f"Процент успеха: {metrics['success_rate']:.1f}%")

    print("\nПул исполнителей остановлен")


if __name__ == "__main__":
    main()
