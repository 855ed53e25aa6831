"""
Задачи для примеров: регистрируются в исполнителе через ``register_jobs``.
"""

import time


def register_jobs(registry):
    """Регистрация задач примеров в реестре исполнителя."""

    @registry.job()
    def downcase_words(params, report_progress, complete, fail):
        words = params.get('words')
        if not isinstance(words, list):
            fail("'words' must be a list of strings")
            return

        result = []
        for index, word in enumerate(words, start=1):
            result.append(str(word).lower())
            report_progress(index, len(words))
            time.sleep(params.get('delay', 0.05))
        complete(result)

    @registry.job()
    def double(params, report_progress, complete, fail):
        complete(params['n'] * 2)

    @registry.job()
    def sum_squares(params, report_progress, complete, fail):
        n = params.get('n', 0)
        total = 0
        chunk = max(n // 10, 1)
        for i in range(n):
            total += i ** 2
            if (i + 1) % chunk == 0:
                report_progress(i + 1, n)
        complete(total)

    @registry.job()
    def explode(params, report_progress, complete, fail):
        raise RuntimeError("this job always crashes its unit")
