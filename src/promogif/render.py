"""Reference Pillow rasterizer for the promotional scene.

Draws the scene at the requested capture resolution:

- background image (cover-fit) under a diagonal darkening overlay
- logo centred along the top edge
- left column (60%): waving header and the link rows
- right column (40%): blinking title box, slideshow image with caption, footer
- bottom: instruction line and a search bar whose text and caret blink

All layout constants are expressed in a 3200x1600 layout space and scaled to
the request, so any 2:1 request renders the same picture.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from .clock import blink_visible, slideshow_index, wave_offset
from .error_handling import RasterizationError, error_context
from .fetch import ImageFetcher
from .scene import CaptureRequest, PixelBuffer, Scene

logger = logging.getLogger(__name__)

LAYOUT_WIDTH = 3200
LAYOUT_HEIGHT = 1600

FONT_CANDIDATES = ("DejaVuSans-Bold.ttf", "Arial Bold.ttf", "arialbd.ttf")

SEARCH_LOGO_COLORS = ("#4285F4", "#EA4335", "#FBBC05", "#4285F4", "#34A853", "#EA4335")

Color = tuple[int, int, int]
RGBA = tuple[int, int, int, int]


def load_font(size: int) -> ImageFont.ImageFont | ImageFont.FreeTypeFont:
    """Load a bold TrueType font at ``size`` pixels, falling back to Pillow's bundled font."""
    for name in FONT_CANDIDATES:
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


def with_alpha(color: Color, alpha: int) -> RGBA:
    return (color[0], color[1], color[2], alpha)


def cover_fit(image: Image.Image, size: tuple[int, int]) -> Image.Image:
    """Scale and centre-crop ``image`` so it fully covers ``size``."""
    target_w, target_h = size
    scale = max(target_w / image.width, target_h / image.height)
    scaled = image.resize(
        (max(1, round(image.width * scale)), max(1, round(image.height * scale))),
        Image.Resampling.LANCZOS,
    )
    left = (scaled.width - target_w) // 2
    top = (scaled.height - target_h) // 2
    return scaled.crop((left, top, left + target_w, top + target_h))


def contain_fit(image: Image.Image, max_w: int, max_h: int) -> Image.Image:
    """Scale ``image`` down (never up) to fit inside ``max_w`` x ``max_h``."""
    scale = min(max_w / image.width, max_h / image.height, 1.0)
    if scale == 1.0:
        return image
    return image.resize(
        (max(1, round(image.width * scale)), max(1, round(image.height * scale))),
        Image.Resampling.LANCZOS,
    )


def diagonal_overlay(size: tuple[int, int], color: Color) -> Image.Image:
    """Darkening layer: opaque-ish at the corners, lighter along the diagonal."""
    width, height = size
    xs = np.linspace(0.0, 1.0, width, dtype=np.float32)[None, :]
    ys = np.linspace(0.0, 1.0, height, dtype=np.float32)[:, None]
    t = (xs + ys) / 2.0
    # 0xDD at both ends, 0x99 in the middle
    alpha = 0xDD - (0xDD - 0x99) * (1.0 - np.abs(2.0 * t - 1.0))
    layer = np.empty((height, width, 4), dtype=np.uint8)
    layer[..., 0] = color[0]
    layer[..., 1] = color[1]
    layer[..., 2] = color[2]
    layer[..., 3] = alpha.astype(np.uint8)
    return Image.fromarray(layer)


@dataclass
class _Canvas:
    """Drawing surface with layout-space to pixel-space scaling."""

    image: Image.Image
    scale: float

    def px(self, value: float) -> int:
        return int(round(value * self.scale))

    def font(self, size: float) -> ImageFont.ImageFont | ImageFont.FreeTypeFont:
        return load_font(max(1, self.px(size)))

    def layer(self) -> tuple[Image.Image, ImageDraw.ImageDraw]:
        layer = Image.new("RGBA", self.image.size, (0, 0, 0, 0))
        return layer, ImageDraw.Draw(layer)

    def composite(self, layer: Image.Image) -> None:
        self.image.alpha_composite(layer)

    def text_size(self, text: str, font: ImageFont.ImageFont | ImageFont.FreeTypeFont) -> tuple[int, int]:
        left, top, right, bottom = font.getbbox(text)
        return right - left, bottom - top


class PillowRasterizer:
    """Rasterizer that draws the scene with Pillow.

    Args:
        fetcher: Resolves background, logo and slideshow images
    """

    def __init__(self, fetcher: ImageFetcher | None = None):
        self.fetcher = fetcher or ImageFetcher()

    async def rasterize(self, scene: Scene, request: CaptureRequest) -> PixelBuffer:
        content = scene.content
        frame = scene.clock_value

        # Image loading errors surface as ResourceLoadError unchanged
        background = await self.fetcher.fetch(content.background_url) if content.background_url else None
        logo = await self.fetcher.fetch(content.logo_url) if content.logo_url else None
        slide = None
        slide_name = ""
        if content.slideshow:
            current = content.slideshow[slideshow_index(frame, len(content.slideshow))]
            slide_name = current.name
            if current.url:
                slide = await self.fetcher.fetch(current.url)

        with error_context(
            "rasterize scene",
            RasterizationError,
            context={"clock_value": frame, "size": f"{request.width}x{request.height}"},
            logger=logger,
        ):
            size = request.pixel_size
            canvas = _Canvas(
                Image.new("RGBA", size, with_alpha(scene.style.rgb("background"), 255)),
                scale=size[0] / LAYOUT_WIDTH,
            )
            self._draw_background(canvas, scene, background)
            self._draw_logo(canvas, logo)
            self._draw_left_column(canvas, scene)
            self._draw_right_column(canvas, scene, slide, slide_name)
            self._draw_bottom(canvas, scene)
            return np.asarray(canvas.image.convert("RGB"))

    def _draw_background(self, canvas: _Canvas, scene: Scene, background: Image.Image | None) -> None:
        if background is not None:
            canvas.composite(cover_fit(background, canvas.image.size))
        canvas.composite(diagonal_overlay(canvas.image.size, scene.style.rgb("background")))

    def _draw_logo(self, canvas: _Canvas, logo: Image.Image | None) -> None:
        if logo is None:
            return
        height = canvas.px(256)
        width = max(1, round(logo.width * height / logo.height))
        scaled = logo.resize((width, height), Image.Resampling.LANCZOS)
        x = max(0, (canvas.image.width - width) // 2)
        canvas.image.alpha_composite(scaled, (x, canvas.px(32)))

    def _column_bounds(self, canvas: _Canvas, left: bool) -> tuple[int, int, int, int]:
        """Pixel box (x0, y0, x1, y1) of the left 60% or right 40% column."""
        inner_x0 = 48
        inner_x1 = LAYOUT_WIDTH - 48
        split = inner_x0 + (inner_x1 - inner_x0) * 0.6
        y0, y1 = 288, LAYOUT_HEIGHT - 256
        if left:
            return canvas.px(inner_x0), canvas.px(y0), canvas.px(split - 32), canvas.px(y1)
        return canvas.px(split + 32), canvas.px(y0), canvas.px(inner_x1), canvas.px(y1)

    def _draw_left_column(self, canvas: _Canvas, scene: Scene) -> None:
        content = scene.content
        style = scene.style
        x0, y0, x1, y1 = self._column_bounds(canvas, left=True)
        center_x = (x0 + x1) // 2

        header_font = canvas.font(112)
        row_font = canvas.font(64)
        links = content.visible_links

        header_h = canvas.text_size(content.header_text, header_font)[1] if content.header_text else 0
        row_h = canvas.px(64 + 2 * 32)
        gap = canvas.px(32)
        total_h = header_h + (canvas.px(64) if header_h else 0) + len(links) * row_h + max(0, len(links) - 1) * gap
        y = y0 + max(0, (y1 - y0 - total_h) // 2)

        layer, draw = canvas.layer()
        if content.header_text:
            primary = style.rgb("primary")
            x = center_x - canvas.text_size(content.header_text, header_font)[0] // 2
            for idx, char in enumerate(content.header_text):
                dy = canvas.px(wave_offset(scene.clock_value, idx))
                draw.text((x, y + dy), char, font=header_font, fill=with_alpha(primary, 255))
                x += round(header_font.getlength(char))
            y += header_h + canvas.px(64)

        row_w = min(x1 - x0, canvas.px(896))
        for text in links:
            box = (center_x - row_w // 2, y, center_x + row_w // 2, y + row_h)
            draw.rounded_rectangle(
                box,
                radius=canvas.px(24),
                fill=with_alpha(style.rgb("accent"), 0x90),
                outline=with_alpha(style.rgb("primary"), 0x60),
                width=max(1, canvas.px(4)),
            )
            text_w, text_h = canvas.text_size(text, row_font)
            draw.text(
                (center_x - text_w // 2, y + (row_h - text_h) // 2),
                text,
                font=row_font,
                fill=with_alpha(style.rgb("secondary"), 255),
            )
            y += row_h + gap
        canvas.composite(layer)

    def _draw_right_column(
        self, canvas: _Canvas, scene: Scene, slide: Image.Image | None, slide_name: str
    ) -> None:
        content = scene.content
        style = scene.style
        visible = blink_visible(scene.clock_value)
        x0, y0, x1, y1 = self._column_bounds(canvas, left=False)
        center_x = (x0 + x1) // 2
        primary = style.rgb("primary")

        title_font = canvas.font(64)
        caption_font = canvas.font(40)
        footer_font = canvas.font(48)

        blocks: list[int] = []
        if content.modal_title:
            blocks.append(canvas.text_size(content.modal_title, title_font)[1] + canvas.px(48))
        fitted = None
        if slide is not None:
            fitted = contain_fit(slide, min(x1 - x0, canvas.px(672)), canvas.px(700))
            blocks.append(fitted.height + (canvas.px(64) if slide_name else 0))
        if content.modal_footer:
            blocks.append(canvas.text_size(content.modal_footer, footer_font)[1])
        total_h = sum(blocks) + canvas.px(48) * max(0, len(blocks) - 1)
        y = y0 + max(0, (y1 - y0 - total_h) // 2)

        layer, draw = canvas.layer()
        if content.modal_title:
            text_w, text_h = canvas.text_size(content.modal_title, title_font)
            pad_x, pad_y = canvas.px(48), canvas.px(24)
            grow = canvas.px(8) if visible else 0
            box = (
                center_x - text_w // 2 - pad_x - grow,
                y - grow,
                center_x + text_w // 2 + pad_x + grow,
                y + text_h + 2 * pad_y + grow,
            )
            draw.rounded_rectangle(
                box,
                radius=canvas.px(16),
                fill=with_alpha(style.rgb("accent"), 0x30),
                outline=with_alpha(primary, 255 if visible else 0x90),
                width=max(1, canvas.px(8 if visible else 4)),
            )
            draw.text(
                (center_x - text_w // 2, y + pad_y),
                content.modal_title,
                font=title_font,
                fill=with_alpha(style.rgb("secondary"), 255 if visible else 0x99),
            )
            y += text_h + 2 * pad_y + canvas.px(48)
        canvas.composite(layer)

        if fitted is not None:
            x = max(0, center_x - fitted.width // 2)
            canvas.image.alpha_composite(fitted, (x, y))
            layer, draw = canvas.layer()
            border = max(1, canvas.px(6))
            draw.rounded_rectangle(
                (x - border, y - border, x + fitted.width + border, y + fitted.height + border),
                radius=canvas.px(24),
                outline=with_alpha(primary, 0x60),
                width=border,
            )
            y += fitted.height
            if slide_name:
                text_w, _ = canvas.text_size(slide_name, caption_font)
                draw.text(
                    (center_x - text_w // 2, y + canvas.px(24)),
                    slide_name,
                    font=caption_font,
                    fill=with_alpha(style.rgb("secondary"), 255),
                )
                y += canvas.px(64)
            canvas.composite(layer)
            y += canvas.px(48)

        if content.modal_footer:
            layer, draw = canvas.layer()
            text_w, _ = canvas.text_size(content.modal_footer, footer_font)
            draw.text(
                (center_x - text_w // 2, y),
                content.modal_footer,
                font=footer_font,
                fill=with_alpha(primary, 255),
            )
            canvas.composite(layer)

    def _draw_bottom(self, canvas: _Canvas, scene: Scene) -> None:
        content = scene.content
        style = scene.style
        visible = blink_visible(scene.clock_value)
        center_x = canvas.image.width // 2
        bottom = canvas.image.height - canvas.px(32)

        layer, draw = canvas.layer()
        bar_h = canvas.px(120)
        if content.search_text:
            self._draw_search_bar(canvas, draw, center_x, bottom - bar_h, bar_h, content.search_text, visible)
            bottom -= bar_h + canvas.px(24)

        if content.footer_text:
            font = canvas.font(56)
            text_w, text_h = canvas.text_size(content.footer_text, font)
            draw.text(
                (center_x - text_w // 2, bottom - text_h),
                content.footer_text,
                font=font,
                fill=with_alpha(style.rgb("primary"), 255),
            )
        canvas.composite(layer)

    def _draw_search_bar(
        self,
        canvas: _Canvas,
        draw: ImageDraw.ImageDraw,
        center_x: int,
        top: int,
        height: int,
        text: str,
        visible: bool,
    ) -> None:
        logo_font = canvas.font(40)
        text_font = canvas.font(32)
        logo_w = sum(round(logo_font.getlength(ch)) for ch in "Google")
        text_w, text_h = canvas.text_size(text, text_font)
        width = max(canvas.px(750), logo_w + text_w + canvas.px(48 + 24 + 48 + 96))

        x0 = center_x - width // 2
        draw.rounded_rectangle(
            (x0, top, x0 + width, top + height), radius=height // 2, fill=(255, 255, 255, 255)
        )

        x = x0 + canvas.px(48)
        logo_h = canvas.text_size("Google", logo_font)[1]
        for ch, color in zip("Google", SEARCH_LOGO_COLORS):
            draw.text((x, top + (height - logo_h) // 2), ch, font=logo_font, fill=color)
            x += round(logo_font.getlength(ch))

        field_x0 = x + canvas.px(24)
        field_x1 = x0 + width - canvas.px(48)
        pad = canvas.px(18)
        draw.rounded_rectangle(
            (field_x0, top + pad, field_x1, top + height - pad),
            radius=(height - 2 * pad) // 2,
            outline=(209, 213, 219, 255),
            width=max(1, canvas.px(2)),
        )
        text_x = field_x0 + canvas.px(24)
        text_y = top + (height - text_h) // 2
        draw.text(
            (text_x, text_y),
            text,
            font=text_font,
            fill=(31, 41, 55, 255 if visible else 77),
        )
        if visible:
            caret_x = text_x + text_w + canvas.px(8)
            draw.rectangle(
                (caret_x, top + pad + canvas.px(12), caret_x + max(1, canvas.px(4)), top + height - pad - canvas.px(12)),
                fill=(31, 41, 55, 255),
            )
