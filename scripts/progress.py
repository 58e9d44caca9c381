from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import TextIO


@dataclass
class ProgressReporter:
	"""Stage progress for batch detection runs.

	Interactive terminals get a single rewritten line; redirected output only gets the
	first, every ``non_tty_every``-th and the final step so CI logs stay short.
	"""

	label: str
	total: int
	unit: str = "items"
	stream: TextIO = field(default_factory=lambda: sys.stderr)
	non_tty_every: int = 100
	line_width: int = 120

	_processed: int = 0
	_last_printed: int = 0
	_completed: bool = False

	def step(self, increment: int = 1, *, done: bool = False, **metrics: int) -> None:
		if self.total <= 0:
			return

		self._processed = min(max(0, self._processed + increment), self.total)
		finished = bool(done or self._processed >= self.total)
		line = self._render_line(metrics)

		if self._interactive():
			print(line.ljust(self.line_width), end="\n" if finished else "\r", file=self.stream, flush=True)
			self._last_printed = self._processed
			self._completed = finished
			return

		if self._should_log(finished):
			print(line, file=self.stream)
			self._last_printed = self._processed
			self._completed = finished

	def close(self) -> None:
		"""Terminate a dangling interactive line before other output is printed."""
		if self.total <= 0 or self._completed:
			return
		if self._interactive() and self._last_printed > 0:
			print(file=self.stream, flush=True)
		self._completed = True

	def _interactive(self) -> bool:
		isatty = getattr(self.stream, "isatty", None)
		return bool(isatty and isatty())

	def _should_log(self, finished: bool) -> bool:
		if finished or self._processed in (1, self.total):
			return True
		if self.non_tty_every <= 0:
			return False
		return self._processed % self.non_tty_every == 0 and self._processed != self._last_printed

	def _render_line(self, metrics: dict[str, int]) -> str:
		percent = (self._processed / self.total) * 100.0
		base = f"{self.label}: {self._processed}/{self.total} {self.unit} ({percent:5.1f}%)"
		if not metrics:
			return base
		parts = [f"{key}={value}" for key, value in metrics.items()]
		return f"{base} {' '.join(parts)}"
