# sahar/receipts/printing_service.py
from __future__ import annotations

import logging
import os
from typing import Any, Dict

from escpos.printer import Network
from jinja2 import BaseLoader, Environment
from PIL import Image

log = logging.getLogger("sahar.printing")

DEBUG = os.environ.get("PRINT_DEBUG", "").strip().lower() in ("1", "true", "yes", "on")


# ========= Template =========
def render_jinja(body: str, ctx: Dict[str, Any]) -> str:
    env = Environment(loader=BaseLoader(), autoescape=False, trim_blocks=True, lstrip_blocks=True)
    return env.from_string(body).render(**ctx)


# ========= Connect =========
def _connect(host: str, port: int) -> Network:
    if DEBUG:
        log.debug("connecting to printer %s:%s", host, port)
    # short timeout: a dead printer must not hang the register
    return Network(host, port, timeout=5)


# ========= Logo =========
def load_logo(path: str, max_w: int = 384) -> Image.Image | None:
    """Open and shrink the logo to the paper width, 1-bit for thermal heads."""
    if not path or not os.path.exists(path):
        log.warning("logo not found: %s", path)
        return None
    img = Image.open(path)
    if img.mode in ("RGBA", "LA"):
        base = Image.new("RGB", img.size, (255, 255, 255))
        base.paste(img, mask=img.split()[-1])
        img = base
    if img.width > max_w:
        ratio = max_w / float(img.width)
        img = img.resize((max_w, int(img.height * ratio)))
    return img.convert("1")


# ========= Tags =========
# [[C]] [[L]] [[R]] [[B]] [[BIG]] [[NORM]] [[CUT]] [[LOGO:/path|w=384]]
def print_text(host: str, port: int, text: str, do_cut: bool = True) -> None:
    """Send a tagged text receipt. Connection errors propagate to the caller."""
    p = _connect(host, port)
    default = dict(align="left", width=1, height=1, bold=False)
    try:
        for raw in text.splitlines():
            line = raw.rstrip("\r")
            st = dict(**default)
            while line.startswith("[["):
                end = line.find("]]")
                if end == -1:
                    break
                tag = line[2:end].strip()
                line = line[end + 2:].lstrip()
                u = tag.upper()
                if u == "C":
                    st["align"] = "center"
                elif u == "L":
                    st["align"] = "left"
                elif u == "R":
                    st["align"] = "right"
                elif u == "B":
                    st["bold"] = True
                elif u == "BIG":
                    st.update(width=2, height=2, bold=True)
                elif u == "NORM":
                    st = dict(**default)
                elif u == "CUT":
                    p.text("\n\n")
                    p.cut()
                elif u.startswith("LOGO:"):
                    parts = [a.strip() for a in tag.split(":", 1)[1].split("|") if a.strip()]
                    max_w = 384
                    for op in parts[1:]:
                        if op.lower().startswith("w="):
                            try:
                                max_w = int(op.split("=", 1)[1])
                            except ValueError:
                                log.warning("bad logo width %r", op)
                    img = load_logo(parts[0], max_w) if parts else None
                    if img is not None:
                        p.set(align="center")
                        p.image(img)
                else:
                    log.warning("unknown receipt tag [[%s]]", tag)

            p.set(align=st["align"], bold=st["bold"],
                  custom_size=st["width"] > 1, width=st["width"], height=st["height"])
            if line:
                p.text(line + "\n")

        if do_cut:
            p.text("\n\n")
            p.cut()
    finally:
        p.close()
