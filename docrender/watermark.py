"""Watermark placement shared by both backends.

Placement is expressed once as a ``WatermarkPolicy`` and interpreted by
``apply_pdf_watermark`` (an overlay node injected into the browser page) and
``apply_docx_watermark`` (a VML shape anchored in every section header).
"""

import io
import logging
from dataclasses import dataclass
from typing import Any
from xml.sax.saxutils import escape

from docx.oxml import parse_xml

from .images import fade_image, to_data_uri
from .models import WatermarkKind, WatermarkSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WatermarkPolicy:
    """Fixed placement constants; callers only choose text or image."""

    rotation_degrees: int = -45
    text_opacity: float = 0.3
    image_opacity: float = 0.3
    text_color: str = "#C0C0C0"
    font_family: str = "Calibri"
    font_size_pt: int = 60
    image_width_px: int = 300
    image_height_px: int = 300
    z_index: int = 1000

    @property
    def vml_rotation(self) -> int:
        """VML wants a positive clockwise angle."""
        return self.rotation_degrees % 360


DEFAULT_POLICY = WatermarkPolicy()

# Runs once inside the page, right before printing
PDF_OVERLAY_SCRIPT = """
(wm) => {
  const overlay = document.createElement('div');
  overlay.setAttribute('data-watermark', wm.kind);
  overlay.style.cssText = [
    'position: fixed',
    'top: 50%',
    'left: 50%',
    `transform: translate(-50%, -50%) rotate(${wm.rotation}deg)`,
    `opacity: ${wm.opacity}`,
    'pointer-events: none',
    `z-index: ${wm.zIndex}`,
  ].join(';');
  if (wm.kind === 'text') {
    overlay.textContent = wm.text;
    overlay.style.fontFamily = wm.fontFamily;
    overlay.style.fontSize = `${wm.fontSize}pt`;
    overlay.style.fontWeight = 'bold';
    overlay.style.color = wm.color;
    overlay.style.whiteSpace = 'nowrap';
  } else {
    const img = document.createElement('img');
    img.src = wm.src;
    img.style.width = `${wm.width}px`;
    img.style.height = `${wm.height}px`;
    overlay.appendChild(img);
  }
  document.body.appendChild(overlay);
}
"""


def pdf_overlay_args(watermark: WatermarkSpec, policy: WatermarkPolicy = DEFAULT_POLICY) -> dict[str, Any]:
    """Arguments for ``PDF_OVERLAY_SCRIPT``."""
    args: dict[str, Any] = {
        "kind": watermark.kind.value,
        "rotation": policy.rotation_degrees,
        "zIndex": policy.z_index,
    }
    if watermark.kind is WatermarkKind.TEXT:
        args.update(
            text=watermark.payload,
            opacity=policy.text_opacity,
            color=policy.text_color,
            fontFamily=policy.font_family,
            fontSize=policy.font_size_pt,
        )
    else:
        args.update(
            src=to_data_uri(watermark.image_bytes),
            opacity=policy.image_opacity,
            width=policy.image_width_px,
            height=policy.image_height_px,
        )
    return args


async def apply_pdf_watermark(surface, watermark: WatermarkSpec, policy: WatermarkPolicy = DEFAULT_POLICY) -> None:
    """Attach the overlay node to the loaded page so every printed page shows it."""
    await surface.evaluate(PDF_OVERLAY_SCRIPT, pdf_overlay_args(watermark, policy))


# DOCX: VML shapes, the same markup Word writes for Design > Watermark

_VML_NAMESPACES = (
    'xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main" '
    'xmlns:r="http://schemas.openxmlformats.org/officeDocument/2006/relationships" '
    'xmlns:v="urn:schemas-microsoft-com:vml" '
    'xmlns:o="urn:schemas-microsoft-com:office:office" '
    'xmlns:w10="urn:schemas-microsoft-com:office:word"'
)

_TEXT_SHAPETYPE = (
    '<v:shapetype id="_x0000_t136" coordsize="21600,21600" o:spt="136" adj="10800" '
    'path="m@7,l@8,m@5,21600l@6,21600e">'
    "<v:formulas>"
    '<v:f eqn="sum #0 0 10800"/><v:f eqn="prod #0 2 1"/><v:f eqn="sum 21600 0 @1"/>'
    '<v:f eqn="sum 0 0 @2"/><v:f eqn="sum 21600 0 @3"/><v:f eqn="if @0 @3 0"/>'
    '<v:f eqn="if @0 21600 @1"/><v:f eqn="if @0 0 @2"/><v:f eqn="if @0 @4 21600"/>'
    '<v:f eqn="mid @5 @6"/><v:f eqn="mid @8 @5"/><v:f eqn="mid @7 @8"/>'
    '<v:f eqn="mid @6 @7"/><v:f eqn="sum @6 0 @5"/>'
    "</v:formulas>"
    '<v:path textpathok="t" o:connecttype="custom" o:connectlocs="@9,0;@10,10800;@11,21600;@12,10800" '
    'o:connectangles="270,180,90,0"/>'
    '<v:textpath on="t" fitshape="t"/>'
    '<v:handles><v:h position="#0,bottomRight" xrange="6629,14971"/></v:handles>'
    '<o:lock v:ext="edit" text="t" shapetype="t"/>'
    "</v:shapetype>"
)

_PAGE_CENTERED = (
    "position:absolute;margin-left:0;margin-top:0;width:{width}pt;height:{height}pt;"
    "rotation:{rotation};z-index:-251654144;"
    "mso-position-horizontal:center;mso-position-horizontal-relative:page;"
    "mso-position-vertical:center;mso-position-vertical-relative:page"
)


def _text_watermark_run(text: str, index: int, policy: WatermarkPolicy):
    # Shape box follows the text length so fitshape keeps glyphs proportional
    height = policy.font_size_pt
    width = max(height, int(len(text) * policy.font_size_pt * 0.6))
    style = _PAGE_CENTERED.format(width=width, height=height, rotation=policy.vml_rotation)
    xml = (
        f"<w:r {_VML_NAMESPACES}><w:rPr><w:noProof/></w:rPr><w:pict>"
        f"{_TEXT_SHAPETYPE}"
        f'<v:shape id="PowerPlusWaterMarkObject{index}" o:spid="_x0000_s{2049 + index}" '
        f'type="#_x0000_t136" style="{style}" o:allowincell="f" '
        f'fillcolor="{policy.text_color}" stroked="f">'
        f'<v:fill opacity="{policy.text_opacity}"/>'
        f'<v:textpath style="font-family:&quot;{escape(policy.font_family)}&quot;;font-size:1pt;font-weight:bold" '
        f'string={_quote(text)}/>'
        '<w10:wrap anchorx="page" anchory="page"/>'
        "</v:shape></w:pict></w:r>"
    )
    return parse_xml(xml)


def _image_watermark_run(rId: str, index: int, policy: WatermarkPolicy):
    # 1px == 0.75pt
    style = _PAGE_CENTERED.format(
        width=policy.image_width_px * 0.75,
        height=policy.image_height_px * 0.75,
        rotation=policy.vml_rotation,
    )
    xml = (
        f"<w:r {_VML_NAMESPACES}><w:rPr><w:noProof/></w:rPr><w:pict>"
        f'<v:shape id="WordPictureWatermark{index}" o:spid="_x0000_s{3073 + index}" '
        f'style="{style}" o:allowincell="f">'
        f'<v:imagedata r:id="{rId}" o:title="watermark"/>'
        '<w10:wrap anchorx="page" anchory="page"/>'
        "</v:shape></w:pict></w:r>"
    )
    return parse_xml(xml)


def _quote(value: str) -> str:
    return '"' + escape(value, {'"': "&quot;"}) + '"'


def apply_docx_watermark(document, watermark: WatermarkSpec, policy: WatermarkPolicy = DEFAULT_POLICY) -> None:
    """Anchor the watermark in the header of every section of ``document``.

    Sections must already own their header (not linked to the previous one).
    """
    if not document.sections:
        raise ValueError("Document has no sections")

    faded = None
    if watermark.kind is WatermarkKind.IMAGE:
        faded = fade_image(watermark.image_bytes, policy.image_opacity)

    for index, section in enumerate(document.sections, start=1):
        header = section.header
        paragraph = header.paragraphs[0] if header.paragraphs else header.add_paragraph()
        if faded is None:
            run = _text_watermark_run(watermark.payload, index, policy)
        else:
            rId, _ = header.part.get_or_add_image(io.BytesIO(faded))
            run = _image_watermark_run(rId, index, policy)
        paragraph._p.append(run)
