from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pygame

from ..angles import AngleType
from ..readout import RGB, Row, build_sections
from ..sources import MotionSource

BAR_H = 56
TAB_H = 60
HEADER_H = 52
ROW_H = 64
ROW_GAP = 8
PAD = 16

WHITE: RGB = (245, 245, 245)
DIM: RGB = (150, 150, 150)
ACCENT: RGB = (10, 132, 255)
MONO = "dejavusansmono,menlo,consolas,monospace"


@dataclass
class DashboardViewer:
    """
    Tabbed live readout, one tab per source.

    mouse: tabs, deg/rad toggle, Start/Stop, click a row for the detail view,
           wheel scrolls
    keys:  Tab/Left/Right switch tabs, D/R angle unit, Space start/stop,
           Esc/Backspace leave the detail view (Esc again quits)
    """
    width: int = 480
    height: int = 800
    title: str = "Motion Demo"
    fps: int = 60
    bg: Tuple[int, int, int] = (12, 12, 14)

    def __post_init__(self) -> None:
        pygame.init()
        self.screen = pygame.display.set_mode((self.width, self.height))
        pygame.display.set_caption(self.title)
        self.clock = pygame.time.Clock()
        self.font = pygame.font.Font(None, 28)
        self.font_bold = pygame.font.Font(None, 34)
        self.font_header = pygame.font.Font(None, 40)
        self._mono_cache: Dict[int, pygame.font.Font] = {}
        self.font_value = self._mono(28)

        self.is_running = True
        self.angle_type = AngleType.DEGREES
        self.tab = 0
        self.scroll = 0
        self.detail: Optional[Tuple[int, int]] = None  # (section, row)
        self._hits: List[Tuple[pygame.Rect, Callable[[], None]]] = []

    # --- input -----------------------------------------------------------

    def _select_tab(self, i: int, n: int) -> None:
        if n:
            self.tab = i % n
        self.scroll = 0
        self.detail = None

    @staticmethod
    def _toggle(source: MotionSource) -> None:
        if source.is_started:
            source.stop()
        else:
            source.start()

    def handle_events(self, sources: Sequence[MotionSource]) -> None:
        n = len(sources)
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.is_running = False
            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    if self.detail is not None:
                        self.detail = None
                    else:
                        self.is_running = False
                elif event.key == pygame.K_BACKSPACE:
                    self.detail = None
                elif event.key in (pygame.K_TAB, pygame.K_RIGHT):
                    self._select_tab(self.tab + 1, n)
                elif event.key == pygame.K_LEFT:
                    self._select_tab(self.tab - 1, n)
                elif event.key == pygame.K_d:
                    self.angle_type = AngleType.DEGREES
                elif event.key == pygame.K_r:
                    self.angle_type = AngleType.RADIANS
                elif event.key == pygame.K_SPACE and n:
                    self._toggle(sources[self.tab])
            elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                for rect, action in self._hits:
                    if rect.collidepoint(event.pos):
                        action()
                        break
            elif event.type == pygame.MOUSEWHEEL and self.detail is None:
                self.scroll = max(0, self.scroll - event.y * 40)

    # --- drawing ---------------------------------------------------------

    def _text(self, font: pygame.font.Font, text: str, color: RGB, **anchor) -> pygame.Rect:
        surf = font.render(text, True, color)
        rect = surf.get_rect(**anchor)
        self.screen.blit(surf, rect)
        return rect

    def _draw_top_bar(self, source: MotionSource) -> None:
        pygame.draw.rect(self.screen, (28, 28, 30), pygame.Rect(0, 0, self.width, BAR_H))

        # deg | rad segmented control
        seg_w, seg_h = 56, 32
        y = (BAR_H - seg_h) // 2
        for i, (label, kind) in enumerate((("deg", AngleType.DEGREES), ("rad", AngleType.RADIANS))):
            r = pygame.Rect(PAD + i * seg_w, y, seg_w, seg_h)
            selected = self.angle_type is kind
            pygame.draw.rect(self.screen, (99, 99, 102) if selected else (44, 44, 46), r, border_radius=8)
            self._text(self.font, label, WHITE if selected else DIM, center=r.center)
            self._hits.append((r, lambda k=kind: setattr(self, "angle_type", k)))

        self._text(self.font_bold, source.title, WHITE, center=(self.width // 2, BAR_H // 2))

        label = "Stop" if source.is_started else "Start"
        r = pygame.Rect(self.width - PAD - 88, y, 88, seg_h)
        pygame.draw.rect(self.screen, ACCENT, r, width=2, border_radius=8)
        self._text(self.font, label, ACCENT, center=r.center)
        self._hits.append((r, lambda s=source: self._toggle(s)))

    def _draw_tabs(self, sources: Sequence[MotionSource]) -> None:
        top = self.height - TAB_H
        pygame.draw.rect(self.screen, (28, 28, 30), pygame.Rect(0, top, self.width, TAB_H))
        w = self.width // max(1, len(sources))
        for i, s in enumerate(sources):
            r = pygame.Rect(i * w, top, w, TAB_H)
            dot = "* " if s.is_started else ""
            self._text(self.font, dot + s.title, ACCENT if i == self.tab else DIM, center=r.center)
            self._hits.append((r, lambda i=i, n=len(sources): self._select_tab(i, n)))

    def _draw_rows(self, source: MotionSource) -> None:
        area = pygame.Rect(0, BAR_H, self.width, self.height - BAR_H - TAB_H)
        self.screen.set_clip(area)
        y = area.top + PAD - self.scroll
        for si, section in enumerate(build_sections(source.motion, self.angle_type)):
            self._text(self.font_header, section.title, WHITE, midtop=(self.width // 2, y + 12))
            y += HEADER_H
            for ri, row in enumerate(section.rows):
                r = pygame.Rect(PAD, y, self.width - 2 * PAD, ROW_H)
                pygame.draw.rect(self.screen, row.color, r, border_radius=20)
                self._text(self.font, row.title, WHITE, midleft=(r.left + 18, r.centery))
                self._text(self.font_value, row.text, WHITE, midright=(r.right - 36, r.centery))
                self._text(self.font, ">", WHITE, midright=(r.right - 14, r.centery))
                if area.colliderect(r):
                    self._hits.append((r.clip(area), lambda si=si, ri=ri: setattr(self, "detail", (si, ri))))
                y += ROW_H + ROW_GAP
        self.screen.set_clip(None)

        content_h = y + self.scroll - area.top + PAD
        self.scroll = min(self.scroll, max(0, content_h - area.height))

    def _mono(self, size: int) -> pygame.font.Font:
        f = self._mono_cache.get(size)
        if f is None:
            f = pygame.font.SysFont(MONO, size, bold=True)
            self._mono_cache[size] = f
        return f

    def _fit_font(self, text: str, max_w: int) -> pygame.font.Font:
        # shrink from 144 down to 30% before giving up
        for size in range(144, 43, -8):
            f = self._mono(size)
            if f.size(text)[0] <= max_w:
                return f
        return self._mono(44)

    def _draw_detail(self, row: Row) -> None:
        area = pygame.Rect(0, BAR_H, self.width, self.height - BAR_H - TAB_H)
        pygame.draw.rect(self.screen, row.color, area)
        back = self._text(self.font, "< Back", WHITE, topleft=(PAD, area.top + PAD))
        self._hits.append((back.inflate(16, 16), lambda: setattr(self, "detail", None)))
        self._text(self.font_bold, row.title, WHITE, midtop=(self.width // 2, area.top + PAD))
        font = self._fit_font(row.text, area.width - 2 * PAD)
        self._text(font, row.text, WHITE, center=area.center)

    def draw(self, sources: Sequence[MotionSource]) -> None:
        self.handle_events(sources)
        if not self.is_running:
            return

        self._hits = []
        self.screen.fill(self.bg)
        if sources:
            source = sources[self.tab]
            self._draw_top_bar(source)
            row = None
            if self.detail is not None:
                si, ri = self.detail
                row = build_sections(source.motion, self.angle_type)[si].rows[ri]
            if row is not None:
                self._draw_detail(row)
            else:
                self._draw_rows(source)
            self._draw_tabs(sources)

        pygame.display.flip()
        self.clock.tick(self.fps)

    def close(self) -> None:
        pygame.quit()
