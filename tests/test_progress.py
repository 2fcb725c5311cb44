import io
import logging
import signal
import time

import pytest

from lively_bar import (
    Ansi,
    ProgressBar,
    Receipt,
    alive_bar,
    config,
)


def quiet(total=None, **options):
    options.setdefault('disable', True)
    options.setdefault('ctrl_c', False)
    return alive_bar(total, **options)


def tty(total=None, **options):
    out = io.StringIO()
    options.setdefault('refresh_secs', 60)
    options.setdefault('ctrl_c', False)
    options.setdefault('enrich_print', False)
    return alive_bar(total, file=out, force_tty=True, **options), out


def test_known_total_completes():
    bar = quiet(10)
    for _ in range(10):
        bar()
    receipt = bar.done()
    assert receipt.total == 10
    assert receipt.count == 10
    assert receipt.percent == 100
    assert receipt.success is True
    assert receipt.overflow is False
    assert receipt.underflow is False


def test_overflow():
    bar = quiet(10)
    for _ in range(15):
        bar()
    receipt = bar.done()
    assert receipt.overflow is True
    assert receipt.underflow is False
    assert receipt.success is False


def test_underflow():
    bar = quiet(10)
    bar(4)
    receipt = bar.done()
    assert receipt.underflow is True
    assert receipt.success is False
    assert receipt.percent == 40


def test_unknown_total():
    bar = quiet()
    bar()
    bar()
    receipt = bar.done()
    assert receipt.total is None
    assert receipt.count == 2
    assert receipt.overflow is False
    assert receipt.underflow is False
    assert receipt.success is True


def test_manual_mode_replaces_position():
    bar = quiet(100, manual=True)
    bar(0.5)
    assert bar.current == 50
    bar(0.75)
    assert bar.current == 75
    assert bar.done().count == 75


def test_manual_mode_without_total():
    bar = quiet(manual=True)
    bar(0.3)
    assert bar.current == pytest.approx(30)
    bar.done()


def test_skipped_items():
    bar = quiet(10)
    bar()
    bar(skipped=True)
    bar(3)
    bar(2, skipped=True)
    assert bar.current == 4
    assert bar.done().count == 4


def test_receipt_values(clock):
    bar = ProgressBar(10, config.resolve(disable=True, ctrl_c=False), clock=clock)
    bar(10)
    clock.now = 5
    receipt = bar.done()
    assert receipt == Receipt(total=10, count=10, percent=100.0, elapsed=5,
                              rate=2.0, success=True, overflow=False, underflow=False)
    assert bar.elapsed == 5


def test_done_twice_returns_the_same_receipt():
    bar = quiet(3)
    first = bar.done()
    assert bar.done() is first
    assert bar.receipt is first


def test_mutations_after_done_are_ignored():
    bar = quiet(3)
    bar.text = 'before'
    bar()
    bar.done()
    bar()
    bar.text = 'after'
    bar.title = 'after'
    assert bar.current == 1
    assert bar.text == 'before'
    assert bar.title == ''
    assert bar.receipt.count == 1


def test_text_and_title():
    bar = quiet(3, title='Start')
    assert bar.title == 'Start'
    bar.set_title('Renamed')
    bar.set_text('step 1')
    assert bar.title == 'Renamed'
    assert bar.text == 'step 1'
    bar.done()


def test_readable_strings():
    bar = quiet(10)
    assert bar.monitor == '0/10 [0%]'
    assert bar.rate == '0.00/s'
    assert bar.eta == '?'
    bar(3)
    assert bar.monitor == '3/10 [30%]'
    bar.done()


def test_eta_reads_do_not_double_count(clock):
    bar = ProgressBar(100, config.resolve(disable=True, ctrl_c=False), clock=clock)
    clock.now = 1
    bar(10)
    assert bar.eta == '9.0s'
    assert bar.eta == '9.0s'
    assert bar.rate == '10.0/s'
    bar.done()


def test_pause_freezes_elapsed(clock):
    bar = ProgressBar(10, config.resolve(disable=True, ctrl_c=False), clock=clock)
    clock.now = 2
    assert bar.elapsed == 2

    resume = bar.pause()
    assert bar.is_paused
    clock.now = 10
    assert bar.elapsed == 2

    resume()
    assert not bar.is_paused
    clock.now = 12
    assert bar.elapsed == 4
    bar.done()


def test_pause_freezes_elapsed_in_real_time():
    bar = quiet(10)
    resume = bar.pause()
    before = bar.elapsed
    time.sleep(0.1)
    assert bar.elapsed == pytest.approx(before, abs=0.01)
    resume()
    time.sleep(0.05)
    assert bar.elapsed > before
    bar.done()


def test_nested_pause_returns_a_noop_resume():
    bar = quiet(10)
    resume = bar.pause()
    nested = bar.pause()
    nested()
    assert bar.is_paused
    resume()
    assert not bar.is_paused
    # A stale resume must not undo a later pause
    again = bar.pause()
    resume()
    assert bar.is_paused
    again()
    bar.done()


def test_pause_after_done_is_a_noop():
    bar = quiet(10)
    bar.done()
    resume = bar.pause()
    resume()
    assert not bar.is_paused


def test_context_manager():
    with quiet(3) as bar:
        bar()
        bar()
        bar()
    assert bar.receipt.success


def test_context_manager_finishes_on_error():
    with pytest.raises(RuntimeError):
        with quiet(3) as bar:
            bar()
            raise RuntimeError('boom')
    assert bar.receipt is not None
    assert bar.receipt.underflow


def test_disabled_bar_writes_nothing():
    out = io.StringIO()
    bar = alive_bar(3, file=out, disable=True, ctrl_c=False)
    bar(3)
    assert bar.done().success
    assert out.getvalue() == ''


def test_non_interactive_output_is_receipt_only():
    out = io.StringIO()
    bar = alive_bar(10, file=out, force_tty=False, ctrl_c=False, title='Job')
    bar(10)
    bar.refresh()
    bar.done()
    lines = out.getvalue().splitlines()
    assert len(lines) == 1
    assert lines[0].startswith('Job ')
    assert '10/10 [100%]' in lines[0]
    assert lines[0].endswith('✓')


def test_receipt_can_be_disabled():
    out = io.StringIO()
    bar = alive_bar(10, file=out, force_tty=False, ctrl_c=False, receipt=False)
    assert bar.done() is not None
    assert out.getvalue() == ''


def test_receipt_text():
    out = io.StringIO()
    bar = alive_bar(1, file=out, force_tty=False, ctrl_c=False, receipt_text=True)
    bar()
    bar.text = 'finished cleanly'
    bar.done()
    assert out.getvalue().rstrip('\n').endswith('finished cleanly')


def test_interactive_output():
    bar, out = tty(10, title='Job', length=10)
    bar(5)
    bar.refresh()
    bar.done()
    output = out.getvalue()
    assert output.startswith(Ansi.HIDE_CURSOR)
    assert 'Job ' in output
    assert '5/10 [50%]' in output
    assert Ansi.CLEAR_LINE in output
    assert output.endswith(Ansi.SHOW_CURSOR)
    assert '5/10 [50%] in ' in output.split(Ansi.CLEAR_LINE)[-1]


def test_print_above_the_bar():
    bar, out = tty(10, enrich_print=True)
    bar(3)
    bar.refresh()
    frame = out.getvalue().split(Ansi.CLEAR_LINE)[-1]
    bar.print('hello', 'world')
    output = out.getvalue()
    assert output.endswith(Ansi.CLEAR_LINE + 'on 3: hello world\n' + frame)
    bar.done()


def test_print_without_enrichment():
    bar, out = tty(10)
    bar.print('plain')
    assert 'plain\n' in out.getvalue()
    assert 'on 0' not in out.getvalue()
    bar.done()


def test_print_after_done_writes_plainly():
    bar, out = tty(10, enrich_print=True)
    bar.done()
    bar.print('late')
    assert out.getvalue().endswith(Ansi.SHOW_CURSOR + 'late\n')


def test_print_while_paused_does_not_redraw():
    bar, out = tty(10)
    resume = bar.pause()
    bar.print('note')
    assert out.getvalue().endswith('note\n')
    resume()
    bar.done()


def test_dual_line_frames_are_cleared_as_a_block():
    bar, out = tty(10, dual_line=True)
    bar.text = 'details'
    bar.refresh()
    bar.refresh()
    assert Ansi.CLEAR_LINE + Ansi.PREVIOUS_LINE + Ansi.CLEAR_LINE in out.getvalue()
    bar.done()


def test_refresh_loop_redraws():
    bar, out = tty(10, refresh_secs=0.01)
    try:
        bar()
        time.sleep(0.3)
        assert out.getvalue().count(Ansi.CLEAR_LINE) > 2
    finally:
        bar.done()
    frozen = out.getvalue()
    time.sleep(0.05)
    assert out.getvalue() == frozen


def test_rendering_failures_are_contained(caplog):

    def broken(length):
        def render(percent, overflow=False, underflow=False):
            raise RuntimeError('cannot draw')
        return render

    caplog.set_level(logging.DEBUG, logger='lively-bar')
    bar, out = tty(10, bar=broken)
    for _ in range(ProgressBar.max_errors + 5):
        bar()
        bar.refresh()

    failures = [r for r in caplog.records if r.getMessage().startswith('Rendering progress bar failed')]
    assert len(failures) == ProgressBar.max_errors
    assert any(r.getMessage().startswith('Rendering disabled') for r in caplog.records)

    receipt = bar.done()
    assert receipt.count == ProgressBar.max_errors + 5
    assert any(r.getMessage() == 'Writing receipt failed' for r in caplog.records)


def test_interrupt_finishes_and_exits():
    previous = signal.getsignal(signal.SIGINT)
    bar = alive_bar(10, disable=True, ctrl_c=True)
    assert signal.getsignal(signal.SIGINT) == bar._on_interrupt
    bar(4)

    with pytest.raises(SystemExit) as excinfo:
        bar._on_interrupt(signal.SIGINT, None)

    assert excinfo.value.code == 130
    assert bar.receipt.count == 4
    assert signal.getsignal(signal.SIGINT) == previous


def test_done_restores_interrupt_handler():
    previous = signal.getsignal(signal.SIGINT)
    bar = alive_bar(10, disable=True, ctrl_c=True)
    bar.done()
    assert signal.getsignal(signal.SIGINT) == previous


def test_nested_bars_finished_outer_first_restore_interrupt_handler():
    previous = signal.getsignal(signal.SIGINT)
    outer = alive_bar(10, disable=True, ctrl_c=True)
    inner = alive_bar(5, disable=True, ctrl_c=True)

    outer.done()
    assert signal.getsignal(signal.SIGINT) == inner._on_interrupt
    inner.done()
    assert signal.getsignal(signal.SIGINT) == previous


def test_nested_bars_finished_inner_first_restore_interrupt_handler():
    previous = signal.getsignal(signal.SIGINT)
    outer = alive_bar(10, disable=True, ctrl_c=True)
    inner = alive_bar(5, disable=True, ctrl_c=True)

    inner.done()
    assert signal.getsignal(signal.SIGINT) == outer._on_interrupt
    outer.done()
    assert signal.getsignal(signal.SIGINT) == previous


def test_finished_bar_passes_interrupt_to_previous_handler():
    received = []
    previous = signal.signal(signal.SIGINT, lambda signum, frame: received.append(signum))
    try:
        outer = alive_bar(10, disable=True, ctrl_c=True)
        inner = alive_bar(5, disable=True, ctrl_c=True)
        outer.done()

        outer._on_interrupt(signal.SIGINT, None)
        assert received == [signal.SIGINT]
        assert inner.receipt is None

        inner.done()
    finally:
        signal.signal(signal.SIGINT, previous)
