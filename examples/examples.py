"""Examples demonstrating the animated progress bar, its styles and print handling"""

import time
import random
import asyncio

from lively_bar import (
    alive_bar,
    alive_it,
    alive_it_async,
    config,
    list_themes,
    list_spinners,
    calibration_info,
)


def example_0():
    print("=== Example 0: Known total ===")

    with alive_bar(100, title='Downloading') as bar:
        for _ in range(100):
            time.sleep(0.03)
            bar()


def example_1():
    print("=== Example 1: Unknown total ===")

    with alive_bar(title='Scanning') as bar:
        for _ in range(random.randint(50, 80)):
            time.sleep(0.03)
            bar()


def example_2():
    print("=== Example 2: Auto iteration with situational text ===")

    bar_items = [f'file_{i}.txt' for i in range(60)]
    for name in alive_it(bar_items, title='Copying', receipt_text=True):
        time.sleep(0.04)


def example_3():
    print("=== Example 3: Printing while the bar runs ===")

    with alive_bar(40, title='Checking') as bar:
        for i in range(40):
            time.sleep(0.05)
            if i % 10 == 0:
                print(f'checkpoint {i} reached')
            if i == 25:
                bar.print('explicit message', 'with', 'values')
            bar()


def example_4():
    print("=== Example 4: Themes ===")

    for theme in list_themes():
        for _ in alive_it(range(30), title=f'{theme:>10}', theme=theme):
            time.sleep(0.02)


def example_5():
    print("=== Example 5: Spinners in unknown mode ===")

    for spinner in list_spinners()[:8]:
        with alive_bar(title=f'{spinner:>10}', unknown=spinner, length=20) as bar:
            for _ in range(30):
                time.sleep(0.02)
                bar()


def example_6():
    print("=== Example 6: Manual mode ===")

    with alive_bar(1000, title='Converting', manual=True) as bar:
        progress = 0.0
        while progress < 1:
            progress = min(1.0, progress + random.uniform(0.01, 0.05))
            bar(progress)
            time.sleep(0.05)


def example_7():
    print("=== Example 7: Skipped items, units and scale ===")

    with alive_bar(5_000_000, title='Hashing', unit='B', scale='IEC') as bar:
        for i in range(50):
            bar(100_000, skipped=(i < 10))
            time.sleep(0.03)


def example_8():
    print("=== Example 8: Pause ===")

    with alive_bar(60, title='Deploying') as bar:
        for i in range(60):
            if i == 30:
                resume = bar.pause()
                print('paused, the terminal is free now')
                time.sleep(1)
                resume()
            bar.text = f'step {i}'
            time.sleep(0.03)
            bar()


def example_9():
    print("=== Example 9: Dual line and shared defaults ===")

    config.set(length=30, dual_line=True, theme='smooth')
    try:
        with alive_bar(50, title='Compiling') as bar:
            for i in range(50):
                bar.text = f'-> module_{i}.py'
                time.sleep(0.04)
                bar()
    finally:
        config.reset()


def example_10():
    print("=== Example 10: Async iteration ===")

    async def produce():
        for i in range(40):
            await asyncio.sleep(0.03)
            yield i

    async def consume():
        async for _ in alive_it_async(produce(), total=40, title='Receiving'):
            pass

    asyncio.run(consume())


def example_11():
    print("=== Example 11: Calibration table ===")

    for rate, fps in calibration_info().items():
        print(f'{rate:>12,} items/s -> {fps} fps')


if __name__ == "__main__":
    import logging

    logging.basicConfig(level=logging.DEBUG)

    for i in range(0, 11 + 1):
        if i != 0:
            time.sleep(1)
        globals()[f"example_{i}"]()
