import io
import sys

from lively_bar import Ansi, PrintHook, alive_bar, enrich_message


def test_enrich_message():
    assert enrich_message('hello', 3) == 'on 3: hello'
    assert enrich_message('hello', 3, offset=1) == 'on 4: hello'
    assert enrich_message('hello', 2.0) == 'on 2: hello'
    assert enrich_message('hello', 2.5) == 'on 2.5: hello'


def test_enrich_multiline_message_indents_continuation_lines():
    assert enrich_message('first\nsecond', 12) == 'on 12: first\n       second'


def test_hook_redirects_complete_lines():
    captured = []
    original = sys.stdout
    hook = PrintHook()
    hook.install(captured.append, enrich=True)
    try:
        assert hook.is_installed()
        assert isinstance(sys.stdout, PrintHook.StdProxy)
        hook.update_position(5)
        print('hello')
        sys.stdout.write('one\ntwo\npartial')
        assert captured == ['on 5: hello', 'on 5: one\n      two']
    finally:
        hook.uninstall()

    assert sys.stdout is original
    assert not hook.is_installed()
    # The partial line is flushed on uninstall
    assert captured[-1] == 'on 5: partial'


def test_hook_without_enrichment():
    captured = []
    hook = PrintHook()
    hook.install(captured.append, enrich=False)
    try:
        print('plain', file=sys.stderr)
    finally:
        hook.uninstall()
    assert captured == ['plain']


def test_paused_hook_writes_to_the_original_stream(capsys):
    captured = []
    hook = PrintHook()
    hook.install(captured.append)
    try:
        hook.pause()
        print('direct')
        hook.resume()
        print('redirected')
    finally:
        hook.uninstall()

    assert captured == ['on 0: redirected']
    assert capsys.readouterr().out == 'direct\n'


def test_install_twice_and_uninstall_twice():
    original = sys.stdout
    hook = PrintHook()
    hook.install(lambda text: None)
    proxy = sys.stdout
    hook.install(lambda text: None)
    assert sys.stdout is proxy
    hook.uninstall()
    hook.uninstall()
    assert sys.stdout is original


def test_resume_before_install_stays_inactive():
    hook = PrintHook()
    hook.resume()
    assert not hook.is_active


def test_failing_print_callback_is_logged(caplog):

    def fail(text):
        raise RuntimeError('no output')

    hook = PrintHook()
    hook.install(fail)
    try:
        print('lost')
    finally:
        hook.uninstall()
    assert any(r.getMessage() == 'Print hook failed' for r in caplog.records)


def test_bar_captures_prints():
    out = io.StringIO()
    original = sys.stdout
    bar = alive_bar(10, file=out, force_tty=True, refresh_secs=60, ctrl_c=False)
    try:
        bar(2)
        print('checkpoint')
        print('details', file=sys.stderr)
    finally:
        bar.done()

    output = out.getvalue()
    assert Ansi.CLEAR_LINE + 'on 2: checkpoint\n' in output
    assert Ansi.CLEAR_LINE + 'on 2: details\n' in output
    assert sys.stdout is original


def test_enrich_offset():
    out = io.StringIO()
    bar = alive_bar(10, file=out, force_tty=True, refresh_secs=60, ctrl_c=False, enrich_offset=100)
    try:
        bar()
        print('shifted')
    finally:
        bar.done()
    assert 'on 101: shifted\n' in out.getvalue()


def test_non_interactive_bar_leaves_streams_alone():
    original = sys.stdout
    bar = alive_bar(10, file=io.StringIO(), force_tty=False, ctrl_c=False)
    assert sys.stdout is original
    bar.done()


def test_nested_bar_draws_on_the_real_stream(capsys):
    out = io.StringIO()
    outer = alive_bar(10, file=out, force_tty=True, refresh_secs=60, ctrl_c=False)
    try:
        inner = alive_bar(5, force_tty=False, ctrl_c=False)
        inner(5)
        inner.done()
    finally:
        outer.done()
    assert '5/5' not in out.getvalue()
    assert '5/5 [100%]' in capsys.readouterr().out


def test_hooks_uninstalled_out_of_order_restore_streams():
    original_out, original_err = sys.stdout, sys.stderr
    outer_lines, inner_lines = [], []
    outer, inner = PrintHook(), PrintHook()
    outer.install(outer_lines.append, enrich=False)
    inner.install(inner_lines.append, enrich=False)

    outer.uninstall()
    print('still inside')
    inner.uninstall()

    assert sys.stdout is original_out
    assert sys.stderr is original_err
    assert inner_lines == ['still inside']
    assert outer_lines == []


def test_bars_finished_out_of_order_restore_streams():
    original_out, original_err = sys.stdout, sys.stderr
    first = alive_bar(10, file=io.StringIO(), force_tty=True, refresh_secs=60, ctrl_c=False)
    second = alive_bar(10, file=io.StringIO(), force_tty=True, refresh_secs=60, ctrl_c=False)

    first.done()
    second.done()

    assert sys.stdout is original_out
    assert sys.stderr is original_err
