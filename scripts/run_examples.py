#!/usr/bin/env python3
"""
Скрипт для запуска примеров использования пула исполнителей.
"""

import sys
import argparse
from pathlib import Path


def main():
    """Основная функция скрипта."""
    parser = argparse.ArgumentParser(description="Запуск примеров пула исполнителей")
    parser.add_argument(
        "example",
        choices=["basic", "process"],
        help="Тип примера для запуска"
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Путь к файлу конфигурации (для примера process)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Уровень логирования"
    )

    args = parser.parse_args()

    # Задачи примеров лежат в examples/, поэтому нужен корень проекта
    project_root = Path(__file__).parent.parent
    sys.path.insert(0, str(project_root))

    try:
        if args.example == "basic":
            print("Запуск базового примера...")
            import examples.basic_usage
            examples.basic_usage.main()
        elif args.example == "process":
            print("Запуск примера с процессами...")
            from job_pool import load_config
            import examples.process_usage

            config = load_config(args.config).update(log_level=args.log_level) if args.config else None
            examples.process_usage.main(config)

        print("Пример завершен успешно!")

    except KeyboardInterrupt:
        print("\nПрервано пользователем")
        sys.exit(1)
    except Exception as e:
        print(f"Ошибка при выполнении примера: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
