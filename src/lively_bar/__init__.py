# -*- coding: utf-8 -*-
"""
Lively Bar – An animated, self-calibrating progress bar for Python.
Copyright (c) 2025 Lively Bar contributors
Licensed under the MIT License.
"""

import os
import sys
import math
import signal
import shutil
import time
import itertools
import threading
import unicodedata
from dataclasses import dataclass, fields
from typing import (
        Optional,
        Tuple,
        List,
        Dict,
        Callable,
        Any,
        Iterable,
        Iterator,
        AsyncIterator,
        Sequence,
        Union,
        TextIO,
)
from abc import ABC, abstractmethod
import logging

__all__ = [
    'alive_bar',
    'alive_it',
    'alive_it_async',
    'ProgressBar',
    'ProgressState',
    'Receipt',
    'BarConfig',
    'ConfigContext',
    'config',
    'Theme',
    'View',
    'Widget',
    'TitleWidget',
    'BarWidget',
    'SpinnerWidget',
    'MonitorWidget',
    'ElapsedWidget',
    'StatsWidget',
    'TextWidget',
    'PrintHook',
    'enrich_message',
    'Cell',
    'to_cells',
    'split_graphemes',
    'char_width',
    'cells_width',
    'string_width',
    'join_cells',
    'pad_cells',
    'truncate_cells',
    'fit_cells',
    'RateSmoother',
    'Timer',
    'ETACalculator',
    'format_duration',
    'format_rate',
    'format_number',
    'MIN_FPS',
    'MAX_FPS',
    'calculate_fps',
    'refresh_interval',
    'fixed_interval',
    'calibration_info',
    'Frame',
    'Spinner',
    'BarRenderer',
    'frame_spinner',
    'scrolling_spinner',
    'bouncing_spinner',
    'pulsing_spinner',
    'sequential_spinner',
    'alongside_spinner',
    'delayed_spinner',
    'bar_factory',
    'tip_only_bar',
    'SPINNERS',
    'BARS',
    'THEMES',
    'get_spinner',
    'get_bar',
    'get_theme',
    'list_spinners',
    'list_bars',
    'list_themes',
    'Ansi',
    'TerminalWriter',
    'TTYWriter',
    'NonTTYWriter',
    'VoidWriter',
    'create_terminal',
]

logger = logging.getLogger('lively-bar')


# ============================================================================
# Terminal utilities
# ============================================================================

class Ansi:
    """ANSI escape sequences used by the terminal writers"""
    CLEAR_LINE = '\r\033[K'
    PREVIOUS_LINE = '\033[F'
    HIDE_CURSOR = '\033[?25l'
    SHOW_CURSOR = '\033[?25h'


def _get_terminal_size(default: Optional[os.terminal_size] = None) -> os.terminal_size:
    """Return the size of the terminal, with a safe fallback."""
    if default is None:
        default = os.terminal_size((80, 24))
    try:
        return os.get_terminal_size()
    except OSError:
        # Some environments (cron, IDEs, CI, redirected stdout) have no TTY
        pass
    try:
        return shutil.get_terminal_size(fallback=(default.columns, default.lines))
    except Exception:
        pass
    return default


class TerminalWriter(ABC):
    """Output capabilities the progress engine draws through"""

    @abstractmethod
    def write(self, text: str):
        pass

    @abstractmethod
    def write_line(self, text: str):
        pass

    @abstractmethod
    def clear_line(self, lines: int = 1):
        """Clear the status area, which may span several lines"""
        pass

    def hide_cursor(self):
        pass

    def show_cursor(self):
        pass

    def flush(self):
        pass

    def is_interactive(self) -> bool:
        return False

    def width(self) -> int:
        return 80


class TTYWriter(TerminalWriter):
    """Full-control writer for interactive terminals"""

    def __init__(self, stream: TextIO):
        self.stream = stream

    def write(self, text: str):
        self.stream.write(text)

    def write_line(self, text: str):
        self.stream.write(text + '\n')

    def clear_line(self, lines: int = 1):
        # Move up one line and clear from cursor to end of line
        self.stream.write(Ansi.PREVIOUS_LINE.join([Ansi.CLEAR_LINE] * max(1, lines)))

    def hide_cursor(self):
        self.stream.write(Ansi.HIDE_CURSOR)

    def show_cursor(self):
        self.stream.write(Ansi.SHOW_CURSOR)

    def flush(self):
        self.stream.flush()

    def is_interactive(self) -> bool:
        return True

    def width(self) -> int:
        try:
            columns = os.get_terminal_size(self.stream.fileno()).columns
        except (AttributeError, OSError, ValueError):
            columns = _get_terminal_size().columns
        return columns or 80


class NonTTYWriter(TerminalWriter):
    """Summary-only writer for pipes and files: intermediate frames are dropped"""

    def __init__(self, stream: TextIO):
        self.stream = stream

    def write(self, text: str):
        pass

    def write_line(self, text: str):
        self.stream.write(text + '\n')

    def clear_line(self, lines: int = 1):
        pass

    def flush(self):
        self.stream.flush()


class VoidWriter(TerminalWriter):
    """Writer that suppresses all output"""

    def write(self, text: str):
        pass

    def write_line(self, text: str):
        pass

    def clear_line(self, lines: int = 1):
        pass


def create_terminal(stream: TextIO,
                    force_tty: Optional[bool] = None,
                    disable: bool = False) -> TerminalWriter:
    """Select the terminal writer for the given stream and overrides"""
    if disable:
        return VoidWriter()
    if force_tty is True:
        return TTYWriter(stream)
    if force_tty is False:
        return NonTTYWriter(stream)

    try:
        interactive = stream.isatty()
    except (AttributeError, ValueError):
        interactive = False

    return TTYWriter(stream) if interactive else NonTTYWriter(stream)


# ============================================================================
# Unicode cells
# ============================================================================

@dataclass(frozen=True)
class Cell:
    """One grapheme cluster and the number of terminal columns it occupies"""
    grapheme: str
    width: int


# Code point ranges rendered two columns wide
_WIDE_RANGES = (
    (0x2600, 0x26FF),    # Miscellaneous symbols
    (0x2700, 0x27BF),    # Dingbats
    (0x3400, 0x4DBF),    # CJK extension A
    (0x4E00, 0x9FFF),    # CJK unified ideographs
    (0xF900, 0xFAFF),    # CJK compatibility ideographs
    (0xFF00, 0xFFEF),    # Fullwidth forms
    (0x1F1E0, 0x1F1FF),  # Regional indicators (flags)
    (0x1F300, 0x1F9FF),  # Emoji
    (0x20000, 0x2A6DF),  # CJK extension B
)

_ZWJ = '\u200d'


def char_width(char: str) -> int:
    """Display width of the first code point of char (0, 1 or 2)"""
    if not char:
        return 0

    code = ord(char[0])
    for start, end in _WIDE_RANGES:
        if start <= code <= end:
            return 2

    if unicodedata.east_asian_width(char[0]) in ('W', 'F'):
        return 2
    return 1


def _is_regional_indicator(code: int) -> bool:
    return 0x1F1E6 <= code <= 0x1F1FF


def _extends_cluster(char: str) -> bool:
    """Whether char attaches to the preceding grapheme cluster"""
    code = ord(char)
    return (char == _ZWJ
            or 0xFE00 <= code <= 0xFE0F       # Variation selectors
            or 0x1F3FB <= code <= 0x1F3FF     # Skin tone modifiers
            or 0xE0020 <= code <= 0xE007F     # Tags
            or code == 0x20E3                 # Combining keycap
            or unicodedata.category(char) in ('Mn', 'Me', 'Mc'))


def split_graphemes(text: str) -> List[str]:
    """Split text into grapheme clusters.

    This is a heuristic covering combining marks, variation selectors,
    skin tone modifiers, ZWJ sequences and flag pairs; it is not a full
    implementation of the Unicode segmentation rules.
    """
    clusters: List[str] = []
    joined = False

    for char in text:
        code = ord(char)
        if clusters and (joined or _extends_cluster(char)):
            clusters[-1] += char
        elif (clusters and _is_regional_indicator(code)
              and len(clusters[-1]) == 1 and _is_regional_indicator(ord(clusters[-1]))):
            clusters[-1] += char
        else:
            clusters.append(char)
        joined = char == _ZWJ

    return clusters


def _grapheme_width(grapheme: str) -> int:
    if not grapheme:
        return 0
    # Multi code point emoji clusters take the width of an emoji
    if len(grapheme) > 1 and ord(grapheme[0]) > 0x1F000:
        return 2
    return char_width(grapheme)


def to_cells(text: str) -> List[Cell]:
    """Convert text into display cells"""
    return [Cell(grapheme, _grapheme_width(grapheme)) for grapheme in split_graphemes(text)]


def cells_width(cells: Sequence[Cell]) -> int:
    return sum(cell.width for cell in cells)


def string_width(text: str) -> int:
    """Display width of text in terminal columns"""
    return cells_width(to_cells(text))


def join_cells(cells: Sequence[Cell]) -> str:
    return ''.join(cell.grapheme for cell in cells)


_SPACE_CELL = Cell(' ', 1)


def pad_cells(cells: Sequence[Cell],
              target_width: int,
              fill_char: str = ' ',
              align: str = 'start') -> List[Cell]:
    """
    Pad cells up to target_width.

    Args:
        cells: Cells to pad
        target_width: Width to reach, in columns
        fill_char: Filler grapheme; when it is wide and the deficit is odd,
            the last column is filled with a space
        align: Where the content goes: 'start', 'end' or 'center'. When
            centering, the extra filler goes to the end side.
    """
    if align not in ('start', 'end', 'center'):
        raise ValueError(f"Unknown alignment '{align}'")

    cells = list(cells)
    needed = target_width - cells_width(cells)
    if needed <= 0:
        return cells

    fill_cells = to_cells(fill_char)
    fill = fill_cells[0] if fill_cells and fill_cells[0].width > 0 else _SPACE_CELL
    count, rest = divmod(needed, fill.width)
    filler = [fill] * count + [_SPACE_CELL] * rest

    if align == 'end':
        return filler + cells
    if align == 'center':
        half = len(filler) // 2
        return filler[:half] + cells + filler[half:]
    return cells + filler


def truncate_cells(cells: Sequence[Cell], max_width: int) -> List[Cell]:
    """Keep leading cells while they fit into max_width"""
    result = []
    width = 0
    for cell in cells:
        if width + cell.width > max_width:
            break
        result.append(cell)
        width += cell.width
    return result


def fit_cells(cells: Sequence[Cell], target_width: int, fill_char: str = ' ') -> List[Cell]:
    """Truncate or pad cells so they are exactly target_width columns wide"""
    if target_width <= 0:
        return []
    return pad_cells(truncate_cells(cells, target_width), target_width, fill_char)


# ============================================================================
# Timing
# ============================================================================

def format_duration(seconds: float, short: bool = False) -> str:
    """
    Format a duration for display.

    The long form is H:MM:SS, M:SS or S.ds; the short form, used for the
    ETA, is XhYm, XmYs or S.ds. Invalid durations render as '?'.
    """
    if seconds is None or not math.isfinite(seconds) or seconds < 0:
        return '?'

    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    tenths = int((seconds % 1) * 10)

    if short:
        if hours > 0:
            return f'{hours}h{minutes}m'
        if minutes > 0:
            return f'{minutes}m{secs}s'
        return f'{secs}.{tenths}s'

    if hours > 0:
        return '{:d}:{:02d}:{:02d}'.format(hours, minutes, secs)
    if minutes > 0:
        return '{:d}:{:02d}'.format(minutes, secs)
    return f'{secs}.{tenths}s'


def format_rate(rate: float, unit: str = '') -> str:
    """Format a throughput in items per second"""
    if rate is None or not math.isfinite(rate) or rate < 0:
        return '?/s'

    unit_str = f' {unit}' if unit else ''

    if rate >= 1_000_000:
        return f'{rate / 1_000_000:.1f}M{unit_str}/s'
    if rate >= 1000:
        return f'{rate / 1000:.1f}k{unit_str}/s'
    if rate >= 100:
        return f'{round(rate)}{unit_str}/s'
    if rate >= 1:
        return f'{rate:.1f}{unit_str}/s'
    return f'{rate:.2f}{unit_str}/s'


_SCALES = {
    'SI': (1000, ('', 'k', 'M', 'G', 'T', 'P')),
    'SI2': (1000, ('', 'k', 'M', 'G', 'T', 'P')),
    'IEC': (1024, ('', 'Ki', 'Mi', 'Gi', 'Ti', 'Pi')),
}


def format_number(value: float,
                  scale: Optional[str] = None,
                  precision: int = 1,
                  unit: str = '') -> str:
    """
    Format a count for the monitor widget.

    Args:
        value: Number to format
        scale: None, 'SI'/'SI2' (powers of 1000) or 'IEC' (powers of 1024)
        precision: Decimal places for non-integral values
        unit: Label appended to the number
    """
    if value is None or not math.isfinite(value):
        return f'?{unit}'

    suffix = ''
    if scale:
        factor, suffixes = _SCALES[scale]
        index = 0
        while abs(value) >= factor and index < len(suffixes) - 1:
            value /= factor
            index += 1
        suffix = suffixes[index]

    if float(value).is_integer():
        formatted = str(int(value))
    else:
        formatted = f'{value:.{precision}f}'
    return f'{formatted}{suffix}{unit}'


class RateSmoother:
    """Exponential smoothing: smoothed = alpha * sample + (1 - alpha) * smoothed"""

    def __init__(self, alpha: float = 0.1):
        if not 0 < alpha <= 1:
            raise ValueError("alpha must be in (0, 1]")
        self.alpha = alpha
        self.reset()

    def update(self, sample: float) -> float:
        """Feed a sample and return the smoothed value"""
        if self._initialized:
            self._value = self.alpha * sample + (1 - self.alpha) * self._value
        else:
            # The first sample is taken as is, so there is no ramp up from zero
            self._value = sample
            self._initialized = True
        return self._value

    @property
    def value(self) -> float:
        return self._value

    def reset(self):
        self._value = 0.0
        self._initialized = False


class Timer:
    """Elapsed-time clock that can be paused"""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.reset()

    def elapsed(self) -> float:
        """Get elapsed time in seconds, excluding paused periods"""
        now = self._clock()
        paused = now - self._pause_started if self._pause_started is not None else 0.0
        return now - self._start_time - self._paused_duration - paused

    def pause(self):
        if self._pause_started is None:
            self._pause_started = self._clock()

    def resume(self):
        if self._pause_started is not None:
            self._paused_duration += self._clock() - self._pause_started
            self._pause_started = None

    @property
    def is_paused(self) -> bool:
        return self._pause_started is not None

    def reset(self):
        self._start_time = self._clock()
        self._paused_duration = 0.0
        self._pause_started: Optional[float] = None


class ETACalculator:
    """Smoothed throughput and remaining-time estimation"""

    def __init__(self, alpha: float = 0.1, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._smoother = RateSmoother(alpha)
        self.reset()

    def update(self, current: float, total: float) -> float:
        """
        Observe the current count and return the ETA in seconds.

        Samples are anchored on time, not on calls, so the redraw loop and
        on-demand reads can both call this. Ticks without progress do not feed
        the smoother and keep the anchor, so a stall shows up as a slower
        sample once progress resumes instead of collapsing the rate.
        """
        now = self._clock()
        time_delta = now - self._last_time
        count_delta = current - self._last_count

        if time_delta > 0 and count_delta > 0:
            self._smoother.update(count_delta / time_delta)
            self._last_time = now
            self._last_count = current
        elif count_delta < 0:
            # Count went backwards (manual mode): restart from here
            self._last_time = now
            self._last_count = current

        rate = self._smoother.value
        if rate <= 0:
            return math.inf
        return (total - current) / rate

    @property
    def rate(self) -> float:
        """Current smoothed rate in items per second"""
        return self._smoother.value

    def reset(self):
        self._smoother.reset()
        self._last_count = 0
        self._last_time = self._clock()


# ============================================================================
# Refresh calibration
# ============================================================================

MIN_FPS = 2
MAX_FPS = 60


def calculate_fps(rate: float, calibrate: float = 1_000_000) -> float:
    """
    Map throughput to a redraw frequency.

    Throughput spans many orders of magnitude, so the mapping is logarithmic;
    a rate equal to calibrate gives MAX_FPS.
    """
    if not rate > 0:
        return MIN_FPS
    if math.isinf(rate):
        return MAX_FPS

    factor = MAX_FPS / math.log10(calibrate + 1)
    fps = math.log10(rate + 1) * factor
    return min(MAX_FPS, max(MIN_FPS, fps))


def refresh_interval(rate: float, calibrate: float = 1_000_000) -> float:
    """Seconds between redraws for the given throughput"""
    return 1 / calculate_fps(rate, calibrate)


def fixed_interval(refresh_secs: float) -> Optional[float]:
    """The fixed redraw interval, or None when refresh_secs selects auto mode"""
    if refresh_secs is None or refresh_secs <= 0:
        return None
    return refresh_secs


def calibration_info(calibrate: float = 1_000_000) -> Dict[int, float]:
    """Redraw frequency for a range of throughputs"""
    rates = [1, 10, 100, 1000, 10_000, 100_000, 1_000_000, 10_000_000]
    return {rate: round(calculate_fps(rate, calibrate), 1) for rate in rates}


# ============================================================================
# Animations
# ============================================================================

@dataclass(frozen=True)
class Frame:
    """A rendered animation frame"""
    content: str
    width: int


SpinnerFactory = Callable[[int], Callable[[], Frame]]
BarFactory = Callable[[int], Callable[..., Frame]]

# Width for scrolling animations compiled at natural length
_NATURAL_SCROLL_LENGTH = 10


class Spinner:
    """Cycles through pre-compiled frames of a fixed width"""

    def __init__(self, frames: Sequence[str], length: int = 0):
        if length <= 0:
            length = max((string_width(frame) for frame in frames), default=0)
        self.length = length
        self.frames = [Frame(join_cells(fit_cells(to_cells(frame), length)), length) for frame in frames]
        if not self.frames:
            self.frames = [Frame(' ' * length, length)]
        self._cycle = itertools.cycle(self.frames)

    def __call__(self) -> Frame:
        return next(self._cycle)

    def __len__(self) -> int:
        return len(self.frames)


def frame_spinner(frames: Union[str, Sequence[str]]) -> SpinnerFactory:
    """
    Spinner showing static frames in sequence.

    Example:
        frame_spinner('|/-\\')
        frame_spinner(['⠋', '⠙', '⠹', '⠸'])
    """
    frames = split_graphemes(frames) if isinstance(frames, str) else list(frames)

    def factory(length: int) -> Spinner:
        return Spinner(frames, length)

    return factory


def scrolling_spinner(chars: str,
                      background: str = ' ',
                      right: bool = False,
                      hide: bool = True,
                      wrap: bool = False) -> SpinnerFactory:
    """Spinner where chars scroll across the frame"""
    char_cells = to_cells(chars)
    chars_width = cells_width(char_cells)
    bg_cell = Cell(background, 1)

    def factory(length: int) -> Spinner:
        length = length if length > 0 else _NATURAL_SCROLL_LENGTH
        positions = length + chars_width if hide else length
        frames = []

        for pos in range(positions):
            start = length - pos - 1 if right else pos - (chars_width if hide else 0)
            frame_cells = []
            for i in range(length):
                index = i - start
                if 0 <= index < len(char_cells):
                    frame_cells.append(char_cells[index])
                elif wrap and index < 0:
                    frame_cells.append(char_cells[index % len(char_cells)])
                else:
                    frame_cells.append(bg_cell)
            frames.append(join_cells(fit_cells(frame_cells, length)))

        return Spinner(frames, length)

    return factory


def bouncing_spinner(chars: Union[str, Tuple[str, str]], background: str = ' ') -> SpinnerFactory:
    """Spinner where chars travel to the end of the frame and back"""
    forward, backward = (chars, chars) if isinstance(chars, str) else chars
    forward_cells = to_cells(forward)
    backward_cells = to_cells(backward)
    bg_cell = Cell(background, 1)

    def render(cells: List[Cell], pos: int, length: int) -> str:
        frame_cells = []
        for i in range(length):
            index = i - pos
            frame_cells.append(cells[index] if 0 <= index < len(cells) else bg_cell)
        return join_cells(fit_cells(frame_cells, length))

    def factory(length: int) -> Spinner:
        length = length if length > 0 else _NATURAL_SCROLL_LENGTH
        max_pos = max(0, length - cells_width(forward_cells))
        frames = [render(forward_cells, pos, length) for pos in range(max_pos + 1)]
        frames += [render(backward_cells, pos, length) for pos in range(max_pos - 1, 0, -1)]
        return Spinner(frames, length)

    return factory


def pulsing_spinner(states: Sequence[str], pause: int = 2) -> SpinnerFactory:
    """Spinner going through states and back, holding each for pause frames"""
    sequence = list(states) + list(states[-2:0:-1])
    return frame_spinner([state for state in sequence for _ in range(pause)])


def sequential_spinner(*factories: SpinnerFactory, frames_per_spinner: int = 20) -> SpinnerFactory:
    """Spinner playing several spinners one after another"""

    def factory(length: int) -> Callable[[], Frame]:
        spinners = itertools.cycle([make(length) for make in factories])
        state = {'current': next(spinners), 'count': 0}

        def spin() -> Frame:
            frame = state['current']()
            state['count'] += 1
            if state['count'] >= frames_per_spinner:
                state['count'] = 0
                state['current'] = next(spinners)
            return frame

        return spin

    return factory


def _combine(spinners: List[Callable[[], Frame]], length: int) -> Callable[[], Frame]:
    def spin() -> Frame:
        content = ''.join(spinner().content for spinner in spinners)
        if length > 0:
            return Frame(join_cells(fit_cells(to_cells(content), length)), length)
        return Frame(content, string_width(content))

    return spin


def alongside_spinner(*factories: SpinnerFactory) -> SpinnerFactory:
    """Spinner showing several spinners side by side"""

    def factory(length: int) -> Callable[[], Frame]:
        per_spinner = length // len(factories) if length > 0 else 0
        return _combine([make(per_spinner) for make in factories], length)

    return factory


def delayed_spinner(factory: SpinnerFactory, count: int, offset: int = 1) -> SpinnerFactory:
    """Spinner showing count copies of another one, each offset frames ahead"""

    def delayed(length: int) -> Callable[[], Frame]:
        per_copy = length // count if length > 0 else 0
        spinners = []
        for i in range(count):
            spinner = factory(per_copy)
            for _ in range(i * offset):
                spinner()
            spinners.append(spinner)
        return _combine(spinners, length)

    return delayed


class BarRenderer:
    """Renders a bar of a fixed length at a given completion fraction"""

    def __init__(self,
                 length: int,
                 chars: str = '█',
                 tip: str = '',
                 background: str = ' ',
                 borders: Optional[Tuple[str, str]] = ('|', '|'),
                 errors: Tuple[str, str] = ('⚠', '✗')):
        self.length = length
        self.border_left, self.border_right = borders if borders else ('', '')
        self.inner_length = max(0, length - string_width(self.border_left) - string_width(self.border_right))
        # Gradient from emptiest to fullest
        self.fill_chars = split_graphemes(chars) or ['█']
        self.full_char = self.fill_chars[-1]
        self.background = background or ' '
        self.tip_chars = split_graphemes(tip)
        self.underflow_char, self.overflow_char = errors

    def __call__(self, percent: float, overflow: bool = False, underflow: bool = False) -> Frame:
        if math.isnan(percent):
            percent = 0.0
        percent = max(0.0, min(1.0, percent))
        inner = self.inner_length

        # Fill is counted in full chars, which may be two columns wide
        slots = inner // max(1, string_width(self.full_char))
        fill_width = percent * slots
        full_cells = int(fill_width)
        partial = fill_width - full_cells

        cells = [self.full_char] * full_cells
        if len(self.fill_chars) > 1 and full_cells < slots and partial > 0:
            cells.append(self.fill_chars[int(partial * (len(self.fill_chars) - 1))])
        elif self.tip_chars and 0 < full_cells < slots:
            # The tip replaces the leading edge of the fill
            cells.pop()
            cells.extend(self.tip_chars)

        # Background up to the inner width; fitting drops the excess
        cells.extend([self.background] * inner)

        if overflow:
            end = self.overflow_char
        elif underflow:
            end = self.underflow_char
        else:
            end = self.border_right

        filled = join_cells(fit_cells(to_cells(''.join(cells)), inner, self.background))
        content = self.border_left + filled + end
        return Frame(content, string_width(content))


def bar_factory(chars: str = '█',
                tip: str = '',
                background: str = ' ',
                borders: Optional[Tuple[str, str]] = ('|', '|'),
                errors: Tuple[str, str] = ('⚠', '✗')) -> BarFactory:
    """
    Create a bar factory.

    Example:
        bar_factory(chars='▏▎▍▌▋▊▉█')                          # smooth gradient
        bar_factory(chars='=', tip='>', borders=('[', ']'))    # arrow
        bar_factory(background='-', borders=None)              # no borders
    """

    def factory(length: int) -> BarRenderer:
        return BarRenderer(length, chars=chars, tip=tip, background=background,
                           borders=borders, errors=errors)

    return factory


def tip_only_bar(tip: str = '>') -> BarFactory:
    return bar_factory(chars=' ', tip=tip, background='·', borders=('[', ']'))


# ============================================================================
# Styles
# ============================================================================

SPINNERS: Dict[str, SpinnerFactory] = {
    'classic': frame_spinner('|/-\\'),
    'dots': frame_spinner('⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏'),
    'dots2': frame_spinner('⣾⣽⣻⢿⡿⣟⣯⣷'),
    'dots3': frame_spinner('⠁⠂⠄⡀⢀⠠⠐⠈'),
    'line': frame_spinner(['-', '\\', '|', '/']),
    'bounce': bouncing_spinner('●'),
    'bounce2': frame_spinner('◐◓◑◒'),
    'arrows': frame_spinner('←↖↑↗→↘↓↙'),
    'circle': frame_spinner('◜◠◝◞◡◟'),
    'square': frame_spinner('◰◳◲◱'),
    'triangle': frame_spinner('◢◣◤◥'),
    'grow': frame_spinner('▁▃▄▅▆▇█▇▆▅▄▃'),
    'grow_horizontal': frame_spinner('▏▎▍▌▋▊▉█▉▊▋▌▍▎'),
    'pulse': pulsing_spinner(['○', '◎', '◉', '●']),
    'star': frame_spinner('✶✸✹✺✹✸'),
    'waves': scrolling_spinner('≈≈≈'),
    'aesthetic': scrolling_spinner('▰▰▰', background='▱'),
    'box_bounce': frame_spinner('▖▘▝▗'),
    'noise': frame_spinner('▓▒░▒'),
    'pipe': frame_spinner('┤┘┴└├┌┬┐'),
    'notes': frame_spinner('♩♪♫♬'),
    'simple_dots': frame_spinner(['.  ', '.. ', '...', '   ']),
    'balloon': frame_spinner([' ', '.', 'o', 'O', '@', '*', ' ']),
    'shark': scrolling_spinner('|\\‾‾‾/|', background='~'),
    'fish': scrolling_spinner('><>', background='~', right=True),
    'clock': frame_spinner('🕐🕑🕒🕓🕔🕕🕖🕗🕘🕙🕚🕛'),
    'moon': frame_spinner('🌑🌒🌓🌔🌕🌖🌗🌘'),
    'earth': frame_spinner('🌍🌎🌏'),
    'pointer': delayed_spinner(frame_spinner('∙●'), 3),
    'twin': alongside_spinner(frame_spinner('◐◓◑◒'), frame_spinner('◑◒◐◓')),
    'mixed': sequential_spinner(frame_spinner('|/-\\'), frame_spinner('◢◣◤◥')),
}
SPINNERS['twirls'] = SPINNERS['dots']
SPINNERS['alive'] = SPINNERS['dots2']
SPINNERS['balls'] = SPINNERS['bounce']
SPINNERS['default'] = SPINNERS['dots']

BARS: Dict[str, BarFactory] = {
    'smooth': bar_factory(chars='▏▎▍▌▋▊▉█'),
    'classic': bar_factory(chars='#', background='-', borders=('[', ']')),
    'blocks': bar_factory(chars='░▒▓█', borders=('│', '│')),
    'bubbles': bar_factory(chars='∙○⦿●', borders=('<', '>')),
    'fish': bar_factory(chars='░', tip='><>', background='~'),
    'halloween': bar_factory(chars='█', tip='🎃', borders=('🦇', '🦇'), errors=('😱', '🗡')),
    'arrow': bar_factory(chars='=', tip='>', borders=('[', ']')),
    'solid': bar_factory(chars='█', background='░', borders=('│', '│')),
    'squares': bar_factory(chars='■', background='□', borders=('[', ']')),
    'circles': bar_factory(chars='●', background='○', borders=('(', ')')),
    'ascii': bar_factory(chars='#', background='.', borders=('[', ']')),
    'fancy': bar_factory(chars='▰', background='▱', borders=('⟨', '⟩')),
    'minimal': bar_factory(chars='━', background='─', borders=None),
    'tip': tip_only_bar(),
}
BARS['default'] = BARS['smooth']


@dataclass(frozen=True)
class Theme:
    """Names of the spinner, bar and unknown-mode spinner used together"""
    spinner: str = 'dots'
    bar: str = 'smooth'
    unknown: str = 'dots'

    @staticmethod
    def default():
        """Default theme"""
        return Theme()

    @staticmethod
    def smooth():
        return Theme(spinner='waves', bar='smooth', unknown='waves')

    @staticmethod
    def classic():
        return Theme(spinner='classic', bar='classic', unknown='classic')

    @staticmethod
    def ascii():
        """Theme for terminals without Unicode support"""
        return Theme(spinner='line', bar='ascii', unknown='line')

    @staticmethod
    def scuba():
        return Theme(spinner='shark', bar='fish', unknown='waves')

    @staticmethod
    def musical():
        return Theme(spinner='notes', bar='smooth', unknown='notes')

    @staticmethod
    def halloween():
        return Theme(spinner='moon', bar='halloween', unknown='moon')

    @staticmethod
    def minimal():
        return Theme(spinner='dots', bar='minimal', unknown='dots')

    @staticmethod
    def modern():
        return Theme(spinner='dots2', bar='blocks', unknown='dots2')


THEMES: Dict[str, Theme] = {
    'default': Theme.default(),
    'smooth': Theme.smooth(),
    'classic': Theme.classic(),
    'ascii': Theme.ascii(),
    'scuba': Theme.scuba(),
    'musical': Theme.musical(),
    'halloween': Theme.halloween(),
    'minimal': Theme.minimal(),
    'modern': Theme.modern(),
}


def get_spinner(name: Union[str, SpinnerFactory]) -> SpinnerFactory:
    """Get a spinner factory by name, falling back to the default one"""
    if callable(name):
        return name
    if name not in SPINNERS:
        logger.debug("Unknown spinner '%s', using default", name)
    return SPINNERS.get(name, SPINNERS['default'])


def get_bar(name: Union[str, BarFactory]) -> BarFactory:
    """Get a bar factory by name, falling back to the default one"""
    if callable(name):
        return name
    if name not in BARS:
        logger.debug("Unknown bar '%s', using default", name)
    return BARS.get(name, BARS['default'])


def get_theme(name: Union[str, Theme]) -> Theme:
    """Get a theme by name, falling back to the default one"""
    if isinstance(name, Theme):
        return name
    if name not in THEMES:
        logger.debug("Unknown theme '%s', using default", name)
    return THEMES.get(name, THEMES['default'])


def list_spinners() -> List[str]:
    return list(SPINNERS)


def list_bars() -> List[str]:
    return list(BARS)


def list_themes() -> List[str]:
    return list(THEMES)


# ============================================================================
# Configuration
# ============================================================================

_SCALE_MODES = (None, 'SI', 'IEC', 'SI2')


@dataclass(frozen=True)
class BarConfig:
    """Resolved options of a single bar"""
    length: int = 40
    spinner: Union[str, SpinnerFactory] = 'default'
    bar: Union[str, BarFactory] = 'default'
    unknown: Union[str, SpinnerFactory] = 'default'
    theme: Optional[Union[str, Theme]] = None
    title: str = ''
    file: Optional[TextIO] = None
    force_tty: Optional[bool] = None
    disable: bool = False
    monitor: Union[bool, str] = True
    elapsed: Union[bool, str] = True
    stats: Union[bool, str] = True
    receipt: bool = True
    receipt_text: bool = False
    manual: bool = False
    ctrl_c: bool = True
    dual_line: bool = False
    refresh_secs: float = 0
    calibrate: float = 1_000_000
    eta_alpha: float = 0.1
    unit: str = ''
    scale: Optional[str] = None
    precision: int = 1
    enrich_print: bool = True
    enrich_offset: int = 0
    spinner_length: int = 0

    def __post_init__(self):
        if self.length < 3:
            raise ValueError("length must be at least 3")
        if not 0 < self.eta_alpha <= 1:
            raise ValueError("eta_alpha must be in (0, 1]")
        if self.calibrate <= 0:
            raise ValueError("calibrate must be positive")
        if self.scale not in _SCALE_MODES:
            raise ValueError(f"scale must be one of {_SCALE_MODES}")
        if self.precision < 0:
            raise ValueError("precision must not be negative")
        if self.spinner_length < 0:
            raise ValueError("spinner_length must not be negative")


_OPTION_NAMES = frozenset(f.name for f in fields(BarConfig))


def _check_options(options: Dict[str, Any]):
    unknown = sorted(set(options) - _OPTION_NAMES)
    if unknown:
        raise ValueError(f"Unknown option(s): {', '.join(unknown)}")


class ConfigContext:
    """
    Shared default options, merged beneath the options of each new bar.

    A bar resolves its configuration once, at start; later changes to the
    context do not affect running bars.

    Example:
        config.set(length=30, theme='classic')
        with alive_bar(100, title='Copying') as bar:   # length 30, classic styles
            ...
        config.reset()
    """

    def __init__(self, **options):
        self._options: Dict[str, Any] = {}
        self.set(**options)

    def set(self, **options):
        """Update the defaults; invalid values are rejected immediately"""
        _check_options(options)
        merged = {**self._options, **options}
        BarConfig(**merged)
        self._options = merged

    def get(self) -> Dict[str, Any]:
        """Get the effective defaults as a dict"""
        defaults = BarConfig()
        values = {f.name: getattr(defaults, f.name) for f in fields(BarConfig)}
        values.update(self._options)
        return values

    def reset(self):
        """Drop every default set on this context"""
        self._options = {}

    def resolve(self, **options) -> BarConfig:
        """Merge per-call options over the defaults; per-call options win"""
        _check_options(options)
        merged = {**self._options, **options}

        theme = merged.get('theme')
        if theme is not None:
            theme = get_theme(theme)
            for name in ('spinner', 'bar', 'unknown'):
                # A theme only supplies the styles that were not given explicitly
                if name not in merged:
                    merged[name] = getattr(theme, name)

        return BarConfig(**merged)


config = ConfigContext()


# ============================================================================
# Widgets
# ============================================================================

def _fill_template(template: str, **values: str) -> str:
    for name, value in values.items():
        template = template.replace('{' + name + '}', value)
    return template


class Widget(ABC):
    """Base class for the parts of a progress line"""
    _render_priority: int = 100

    @property
    def render_priority(self) -> int:
        """Render priority for widget ordering (lower is rendered first)"""
        return self._render_priority

    @abstractmethod
    def render(self, state: 'ProgressState') -> str:
        """Render the widget; an empty string leaves it out of the line"""
        pass


class TitleWidget(Widget):
    _render_priority = 10

    def render(self, state: 'ProgressState') -> str:
        return state.title or ''


class BarWidget(Widget):
    """Widget displaying the bar itself, only when the total is known"""
    _render_priority = 20

    def __init__(self, bar: Callable[..., Frame]):
        self.bar = bar

    def render(self, state: 'ProgressState') -> str:
        if state.total is None:
            return ''
        return self.bar(state.percent, state.overflow).content


class SpinnerWidget(Widget):
    """
    Widget displaying the animation.

    With a known total the spinner runs alongside the bar until the work is
    complete; with an unknown total the unknown-mode spinner takes the place
    of the bar.
    """
    _render_priority = 30

    def __init__(self, spinner: Callable[[], Frame], unknown: Callable[[], Frame]):
        self.spinner = spinner
        self.unknown = unknown

    def render(self, state: 'ProgressState') -> str:
        if state.total is None:
            return self.unknown().content
        if state.percent < 1 and not state.overflow:
            return self.spinner().content
        return ''


class MonitorWidget(Widget):
    _render_priority = 40

    def render(self, state: 'ProgressState') -> str:
        if not state.config.monitor:
            return ''
        return state.monitor_text()


class ElapsedWidget(Widget):
    _render_priority = 50

    def render(self, state: 'ProgressState') -> str:
        template = state.config.elapsed
        if not template:
            return ''
        elapsed = format_duration(state.elapsed)
        if isinstance(template, str):
            return _fill_template(template, elapsed=elapsed)
        return f'in {elapsed}'


class StatsWidget(Widget):
    """Widget displaying rate and ETA, only when the total is known"""
    _render_priority = 60

    def render(self, state: 'ProgressState') -> str:
        template = state.config.stats
        if not template or state.total is None:
            return ''

        rate = state.rate_text()
        if isinstance(template, str):
            return _fill_template(template, rate=rate, eta=state.eta_text())
        if math.isfinite(state.eta):
            return f'({rate}, eta: {state.eta_text()})'
        return f'({rate})'


class TextWidget(Widget):
    """Widget displaying the situational text inline, unless in dual-line mode"""
    _render_priority = 70

    def render(self, state: 'ProgressState') -> str:
        if state.config.dual_line:
            return ''
        return state.text or ''


# ============================================================================
# View
# ============================================================================

def _ellipsize(line: str, width: int) -> str:
    """Truncate line to width columns, marking the cut with an ellipsis"""
    cells = to_cells(line)
    if cells_width(cells) <= width:
        return line
    return join_cells(truncate_cells(cells, max(0, width - 3))) + '...'


class View:
    """Composes the widgets of a bar into a line that fits the terminal"""

    def __init__(self, config: BarConfig, widgets: Optional[List[Widget]] = None):
        self.config = config
        self.bar = get_bar(config.bar)(config.length)
        self.spinner = get_spinner(config.spinner)(config.spinner_length)
        self.unknown = get_spinner(config.unknown)(config.length)
        self.widgets = sorted(widgets if widgets is not None else self._default_widgets(),
                              key=lambda widget: widget.render_priority)

    def _default_widgets(self) -> List[Widget]:
        return [
            TitleWidget(),
            BarWidget(self.bar),
            SpinnerWidget(self.spinner, self.unknown),
            MonitorWidget(),
            ElapsedWidget(),
            StatsWidget(),
            TextWidget(),
        ]

    def render(self, state: 'ProgressState', width: int) -> str:
        """Render one frame; in dual-line mode the text goes on a second line"""
        parts = [widget.render(state) for widget in self.widgets]
        line = ' '.join(part for part in parts if part)

        line = _ellipsize(line, width)
        if self.config.dual_line and state.text:
            # Each drawn line must fit, or the terminal wraps it and clearing misses rows
            line += '\n' + '\n'.join(_ellipsize(text, width) for text in state.text.split('\n'))
        return line

    def render_receipt(self, state: 'ProgressState', receipt: 'Receipt') -> str:
        """Render the final summary line"""
        parts = []
        if state.title:
            parts.append(state.title)

        parts.append(self.bar(1.0, receipt.overflow, receipt.underflow).content)

        count = state.format_count(receipt.count)
        total = state.format_count(receipt.total) if receipt.total is not None else '?'
        parts.append(f'{count}/{total} [{round(receipt.percent)}%]')
        parts.append(f'in {format_duration(receipt.elapsed)}')
        parts.append(f'({format_rate(receipt.rate, self.config.unit)})')

        if receipt.overflow:
            parts.append('✗')
        elif receipt.underflow:
            parts.append('⚠')
        else:
            parts.append('✓')

        if self.config.receipt_text and state.text:
            parts.append(state.text)

        return ' '.join(parts)


# ============================================================================
# Print Hook
# ============================================================================

def enrich_message(message: str, position: float, offset: int = 0) -> str:
    """
    Prefix a message with the bar position.

    Continuation lines are indented under the prefix instead of repeating it:

        on 42: first line
               second line
    """
    position += offset
    if float(position).is_integer():
        position = int(position)
    prefix = f'on {position}: '
    indent = ' ' * len(prefix)

    lines = message.split('\n')
    return '\n'.join((prefix if i == 0 else indent) + line for i, line in enumerate(lines))


class PrintHook:
    """
    Redirects sys.stdout and sys.stderr into the bar while it runs.

    Complete lines written to the redirected streams are handed to on_print,
    optionally enriched with the bar position. While the hook is paused,
    writes go straight to the original streams.
    """

    class StdProxy:
        """Line-buffering proxy replacing a standard stream"""

        def __init__(self, hook: 'PrintHook', stream: TextIO):
            self.hook = hook
            self.stream = stream
            self.buffer = []

        def write(self, data):
            if not data:
                return 0

            with self.hook.lock:
                if not self.hook.is_active:
                    self.stream.write(data)
                    return len(data)

                self.buffer.append(data)
                if '\n' not in data:
                    return len(data)

                full_data = ''.join(self.buffer)
                complete_part, _, trailing_part = full_data.rpartition('\n')
                # Keep trailing part in buffer
                self.buffer = [trailing_part] if trailing_part else []
                self.hook._emit(complete_part)
            return len(data)

        def flush(self):
            with self.hook.lock:
                self._flush_internal()

        def _flush_internal(self):
            if self.buffer:
                data = ''.join(self.buffer)
                self.buffer = []
                if self.hook.is_active:
                    self.hook._emit(data)
                else:
                    self.stream.write(data)
            self.stream.flush()

        def __getattr__(self, name):
            return getattr(self.stream, name)

    def __init__(self, lock=None):
        self.lock = lock or threading.RLock()
        self.position: float = 0
        self.is_active = False
        self._on_print: Optional[Callable[[str], None]] = None
        self._enrich = False
        self._offset = 0
        self._proxies: Dict[str, 'PrintHook.StdProxy'] = {}

    def install(self, on_print: Callable[[str], None], enrich: bool = True, offset: int = 0):
        """Start redirecting the standard streams"""
        with self.lock:
            if self.is_installed():
                return

            self._on_print = on_print
            self._enrich = enrich
            self._offset = offset
            for name in ('stdout', 'stderr'):
                proxy = self.StdProxy(self, getattr(sys, name))
                self._proxies[name] = proxy
                setattr(sys, name, proxy)
            self.is_active = True

    def uninstall(self):
        """Restore the standard streams, flushing any partial line first"""
        with self.lock:
            if not self.is_installed():
                return

            for name, proxy in self._proxies.items():
                proxy._flush_internal()
                current = getattr(sys, name)
                if current is proxy:
                    setattr(sys, name, proxy.stream)
                    continue
                # Another hook wrapped ours later, unlink our proxy from its chain
                node = current
                while isinstance(node, self.StdProxy):
                    if node.stream is proxy:
                        node.stream = proxy.stream
                        break
                    node = node.stream

            self.is_active = False
            self._on_print = None
            self._proxies = {}

    def pause(self):
        with self.lock:
            self.is_active = False

    def resume(self):
        with self.lock:
            if self.is_installed():
                self.is_active = True

    def update_position(self, position: float):
        self.position = position

    def is_installed(self) -> bool:
        return self._on_print is not None

    def _emit(self, message: str):
        if self._enrich:
            message = enrich_message(message, self.position, self._offset)
        try:
            self._on_print(message)
        except Exception:
            logger.exception('Print hook failed')


# ============================================================================
# Progress Engine
# ============================================================================

_INITIAL_REFRESH_SECS = 0.05
_INTERRUPT_EXIT_STATUS = 130


def _live_sigint_handler(handler):
    """Skip over the SIGINT handlers of bars that have already finished"""
    while (getattr(handler, '__func__', None) is ProgressBar._on_interrupt
           and handler.__self__._state.receipt is not None):
        handler = handler.__self__._previous_sigint
    return handler


@dataclass(frozen=True)
class Receipt:
    """Summary of a finished bar"""
    total: Optional[float]
    count: float
    percent: float
    elapsed: float
    rate: float
    success: bool
    overflow: bool
    underflow: bool


@dataclass
class ProgressState:
    """Mutable state of a running bar, as seen by the widgets"""
    config: BarConfig
    total: Optional[float] = None
    current: float = 0
    skipped: float = 0
    text: str = ''
    title: str = ''
    is_running: bool = True
    is_paused: bool = False
    last_rendered_frame: str = ''
    receipt: Optional[Receipt] = None
    elapsed: float = 0.0
    rate: float = 0.0
    eta: float = math.inf

    @property
    def effective_count(self) -> float:
        return self.current - self.skipped

    @property
    def percent(self) -> float:
        """Completion fraction capped at 1, or 0 when the total is unknown"""
        if self.total is None:
            return 0.0
        if self.total == 0:
            return 1.0
        return min(1.0, self.effective_count / self.total)

    @property
    def overflow(self) -> bool:
        return self.total is not None and self.effective_count > self.total

    @property
    def underflow(self) -> bool:
        return self.total is not None and self.effective_count < self.total

    def format_count(self, value: float) -> str:
        cfg = self.config
        return format_number(value, cfg.scale, cfg.precision, cfg.unit)

    def monitor_text(self) -> str:
        count = self.format_count(self.effective_count)
        total = self.format_count(self.total) if self.total is not None else '?'
        percent = f'{self.percent * 100:.0f}%'

        if isinstance(self.config.monitor, str):
            return _fill_template(self.config.monitor, count=count, total=total, percent=percent)
        return f'{count}/{total} [{percent}]'

    def rate_text(self) -> str:
        return format_rate(self.rate, self.config.unit)

    def eta_text(self) -> str:
        if self.total is None or not math.isfinite(self.eta):
            return '?'
        return format_duration(self.eta, short=True)


class ProgressBar:
    """
    A live progress bar.

    The bar starts drawing as soon as it is created and keeps redrawing from
    a background timer until done() is called. Calling the bar advances it.

    Args:
        total: Expected number of items, None for unknown mode
        config: Resolved options, see ConfigContext.resolve()
        clock: Time source for elapsed time and throughput
    """
    max_errors = 10

    def __init__(self,
                 total: Optional[float] = None,
                 config: Optional[BarConfig] = None,
                 clock: Callable[[], float] = time.monotonic):
        if total is not None and total < 0:
            raise ValueError("total must not be negative")

        self.config = config or BarConfig()
        self._lock = threading.RLock()
        self._state = ProgressState(self.config, total=total, title=self.config.title)
        self._view = View(self.config)
        self._timer = Timer(clock)
        self._eta = ETACalculator(self.config.eta_alpha, clock)

        stream = self.config.file or sys.stdout
        if isinstance(stream, PrintHook.StdProxy):
            # Draw below any other bar's redirection
            stream = stream.stream
        self._stream = stream
        self._terminal = create_terminal(stream, self.config.force_tty, self.config.disable)

        self._hook = PrintHook(self._lock)
        self._refresh_timer: Optional[threading.Timer] = None
        self._drawn_lines = 0
        self._error_count = 0
        self._rendering_disabled = False
        self._pause_token: Optional[object] = None
        self._previous_sigint: Any = None
        self._sigint_installed = False

        self._start()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.done()
        return False

    def __call__(self, count: float = 1, skipped: bool = False):
        """
        Advance the bar.

        Args:
            count: Number of items processed, or in manual mode the completion
                fraction (0 to 1) which replaces the current position
            skipped: Items were bypassed rather than processed; they count
                toward the position but not toward progress
        """
        with self._lock:
            state = self._state
            if not state.is_running:
                return

            if skipped:
                state.skipped += count

            if self.config.manual:
                state.current = count * (state.total if state.total is not None else 100)
            else:
                state.current += count

            self._hook.update_position(state.current)

    # ----------------------------------------------------------------- readers

    @property
    def current(self) -> float:
        """Effective count: items advanced minus items skipped"""
        return self._state.effective_count

    @property
    def text(self) -> str:
        return self._state.text

    @text.setter
    def text(self, value: str):
        self.set_text(value)

    @property
    def title(self) -> str:
        return self._state.title

    @title.setter
    def title(self, value: str):
        self.set_title(value)

    @property
    def elapsed(self) -> float:
        """Elapsed seconds, excluding paused periods"""
        receipt = self._state.receipt
        if receipt is not None:
            return receipt.elapsed
        return self._timer.elapsed()

    @property
    def monitor(self) -> str:
        with self._lock:
            return self._state.monitor_text()

    @property
    def rate(self) -> str:
        with self._lock:
            self._update_stats()
            return self._state.rate_text()

    @property
    def eta(self) -> str:
        with self._lock:
            self._update_stats()
            return self._state.eta_text()

    @property
    def receipt(self) -> Optional[Receipt]:
        return self._state.receipt

    @property
    def is_running(self) -> bool:
        return self._state.is_running

    @property
    def is_paused(self) -> bool:
        return self._state.is_paused

    def set_text(self, value: str):
        with self._lock:
            if self._state.is_running:
                self._state.text = str(value)

    def set_title(self, value: str):
        with self._lock:
            if self._state.is_running:
                self._state.title = str(value)

    # ----------------------------------------------------------------- control

    def pause(self) -> Callable[[], None]:
        """
        Pause the bar and return a function that resumes it.

        While paused the bar is erased, the elapsed time stops and the terminal
        is free for other output. Pausing a bar that is already paused or
        finished returns a resume function that does nothing.
        """
        with self._lock:
            state = self._state
            if not state.is_running or state.is_paused:
                return _noop

            state.is_paused = True
            self._timer.pause()
            self._stop_refresh()
            self._clear()
            self._terminal.show_cursor()
            self._terminal.flush()

            token = object()
            self._pause_token = token

        def resume():
            with self._lock:
                if self._pause_token is not token or not self._state.is_running:
                    return
                self._pause_token = None
                self._state.is_paused = False
                self._timer.resume()
                self._terminal.hide_cursor()
                self._redraw()
                self._start_refresh()

        return resume

    def print(self, *values, sep: str = ' '):
        """Print a message above the bar, enriched with the position if enabled"""
        message = sep.join(str(value) for value in values)
        with self._lock:
            if self.config.enrich_print and self._state.is_running:
                message = enrich_message(message, self._state.current, self.config.enrich_offset)
            self._print_line(message)

    def refresh(self):
        """Redraw the bar now"""
        with self._lock:
            if self._state.is_running and not self._state.is_paused:
                self._redraw()

    def done(self) -> Receipt:
        """Finish the bar and return its receipt; later calls return the same receipt"""
        with self._lock:
            if self._state.receipt is None:
                self._finalize()
            return self._state.receipt

    # ---------------------------------------------------------------- internals

    def _start(self):
        if self._terminal.is_interactive():
            if self.config.enrich_print:
                self._hook.install(self._print_line, self.config.enrich_print, self.config.enrich_offset)
            self._terminal.hide_cursor()
            self._redraw()
            self._start_refresh()

        if self.config.ctrl_c:
            self._install_signal_handler()

    def _update_stats(self):
        state = self._state
        state.elapsed = self._timer.elapsed()
        count = state.effective_count
        # Unknown mode still tracks throughput, against its own count
        eta = self._eta.update(count, state.total if state.total is not None else count)
        state.eta = eta if state.total is not None else math.inf
        state.rate = self._eta.rate

    def _redraw(self):
        if self._rendering_disabled or not self._terminal.is_interactive():
            return

        self._hook.pause()
        try:
            self._update_stats()
            frame = self._view.render(self._state, self._terminal.width())
            self._clear()
            self._terminal.write(frame)
            self._terminal.flush()
            self._state.last_rendered_frame = frame
            self._drawn_lines = frame.count('\n') + 1
            self._error_count = 0
        except Exception:
            self._error_count += 1
            logger.exception('Rendering progress bar failed (error %d/%d)', self._error_count, self.max_errors)
            if self._error_count >= self.max_errors:
                logger.error('Rendering disabled after %d consecutive failures', self._error_count)
                self._rendering_disabled = True
        finally:
            self._hook.resume()

    def _clear(self):
        if self._drawn_lines:
            self._terminal.clear_line(self._drawn_lines)
            self._drawn_lines = 0

    def _print_line(self, text: str):
        with self._lock:
            if not self._state.is_running or not self._terminal.is_interactive():
                self._stream.write(text + '\n')
                self._stream.flush()
                return

            self._hook.pause()
            try:
                self._clear()
                self._terminal.write_line(text)
                if self._state.last_rendered_frame and not self._state.is_paused and not self._rendering_disabled:
                    self._terminal.write(self._state.last_rendered_frame)
                    self._drawn_lines = self._state.last_rendered_frame.count('\n') + 1
                self._terminal.flush()
            finally:
                self._hook.resume()

    def _interval(self) -> float:
        interval = fixed_interval(self.config.refresh_secs)
        if interval is None:
            interval = refresh_interval(self._eta.rate, self.config.calibrate)
        return interval

    def _start_refresh(self, interval: Optional[float] = None):
        if not self._terminal.is_interactive():
            return
        if interval is None:
            interval = fixed_interval(self.config.refresh_secs) or _INITIAL_REFRESH_SECS

        timer = threading.Timer(interval, self._tick)
        timer.daemon = True
        self._refresh_timer = timer
        timer.start()

    def _stop_refresh(self):
        if self._refresh_timer is not None:
            self._refresh_timer.cancel()
            self._refresh_timer = None

    def _tick(self):
        with self._lock:
            # A tick cancelled while waiting for the lock must not reschedule
            if threading.current_thread() is not self._refresh_timer:
                return
            self._refresh_timer = None
            if not self._state.is_running or self._state.is_paused:
                return

            self._redraw()
            if not self._rendering_disabled:
                self._start_refresh(self._interval())

    def _install_signal_handler(self):
        if threading.current_thread() is not threading.main_thread():
            logger.debug('Not in the main thread, Ctrl+C handling skipped')
            return
        try:
            self._previous_sigint = signal.signal(signal.SIGINT, self._on_interrupt)
            self._sigint_installed = True
        except (ValueError, OSError):
            logger.debug('Installing SIGINT handler failed', exc_info=True)

    def _restore_signal_handler(self):
        if not self._sigint_installed:
            return
        self._sigint_installed = False
        try:
            # When a later bar owns the handler, leave it; that bar skips us on restore
            if signal.getsignal(signal.SIGINT) == self._on_interrupt:
                signal.signal(signal.SIGINT, _live_sigint_handler(self._previous_sigint))
        except (ValueError, OSError, TypeError):
            logger.debug('Restoring SIGINT handler failed', exc_info=True)

    def _on_interrupt(self, signum, frame):
        if self._state.receipt is None:
            self.done()
            raise SystemExit(_INTERRUPT_EXIT_STATUS)

        # Already finished, pass the signal on to whoever was installed before us
        previous = _live_sigint_handler(self._previous_sigint)
        if previous == signal.SIG_IGN:
            return
        if callable(previous):
            previous(signum, frame)
            return
        raise KeyboardInterrupt

    def _finalize(self):
        state = self._state
        self._update_stats()
        state.is_running = False
        self._stop_refresh()
        self._hook.uninstall()
        self._restore_signal_handler()

        count = state.effective_count
        total = state.total
        overflow = state.overflow
        underflow = state.underflow
        elapsed = self._timer.elapsed()
        rate = count / elapsed if elapsed > 0 else 0.0

        state.receipt = Receipt(
            total=total,
            count=count,
            percent=count / total * 100 if total else 100.0,
            elapsed=elapsed,
            rate=rate,
            success=not (overflow or underflow),
            overflow=overflow,
            underflow=underflow,
        )

        try:
            self._clear()
            if self.config.receipt:
                self._terminal.write_line(self._view.render_receipt(state, state.receipt))
        except Exception:
            logger.exception('Writing receipt failed')
        finally:
            self._terminal.show_cursor()
            self._terminal.flush()


def _noop():
    pass


# ============================================================================
# Public API
# ============================================================================

def alive_bar(total: Optional[float] = None,
              *,
              context: Optional[ConfigContext] = None,
              **options) -> ProgressBar:
    """
    Start a progress bar.

    Args:
        total: Expected number of items, None for unknown mode
        context: Defaults to merge beneath the options, the shared config by default
        **options: Any BarConfig field

    Example:
        with alive_bar(len(items), title='Processing') as bar:
            for item in items:
                process(item)
                bar()
    """
    resolved = (context or config).resolve(**options)
    return ProgressBar(total, resolved)


def _detect_total(iterable: Any) -> Optional[int]:
    try:
        return len(iterable)
    except TypeError:
        return None


def alive_it(iterable: Iterable[Any],
             total: Optional[float] = None,
             *,
             context: Optional[ConfigContext] = None,
             **options) -> Iterator[Any]:
    """
    Iterate with a progress bar, advancing it once per item.

    The bar is finished on every exit path, including an early break.

    Example:
        for item in alive_it(items, title='Processing'):
            process(item)
    """
    if total is None:
        total = _detect_total(iterable)

    bar = alive_bar(total, context=context, **options)
    try:
        for item in iterable:
            yield item
            bar()
    finally:
        bar.done()


async def alive_it_async(iterable: Union[Iterable[Any], AsyncIterator[Any]],
                         total: Optional[float] = None,
                         *,
                         context: Optional[ConfigContext] = None,
                         **options) -> AsyncIterator[Any]:
    """
    Asynchronous version of alive_it, accepting async and regular iterables.

    Example:
        async for row in alive_it_async(cursor, total=count):
            await handle(row)
    """
    if total is None:
        total = _detect_total(iterable)

    bar = alive_bar(total, context=context, **options)
    try:
        if hasattr(iterable, '__aiter__'):
            async for item in iterable:
                yield item
                bar()
        else:
            for item in iterable:
                yield item
                bar()
    finally:
        bar.done()
