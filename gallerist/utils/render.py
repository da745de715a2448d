# gallerist/utils/render.py
# Gallery page. Pure function of the MediaItem sequence; no I/O.

from html import escape
from typing import Iterable, Sequence

from gallerist.schemas.media import MediaItem

_STYLE = """
body { font-family: Arial, sans-serif; background: #f0f0f0; color: #333; margin: 0; }
h1 { text-align: center; padding: 20px; margin: 0; }
.forms { display: flex; flex-wrap: wrap; gap: 12px; justify-content: center; padding: 0 20px; }
.forms form { background: #fff; padding: 8px 12px; border-radius: 8px; }
.gallery { display: flex; flex-wrap: wrap; gap: 10px; justify-content: center; padding: 20px; }
.gallery-item { position: relative; background: #fff; border-radius: 8px;
  box-shadow: 0 4px 8px rgba(0,0,0,.1); overflow: hidden; max-width: 300px; margin: 10px;
  display: flex; flex-direction: column; align-items: center; cursor: pointer; }
.gallery-item img, .gallery-item video { display: block; width: 100%; height: auto; object-fit: cover; }
.info { position: absolute; bottom: 48px; left: 0; right: 0; background: rgba(0,0,0,.6); color: #fff;
  padding: 10px; font-size: 14px; display: none; text-align: center; }
.gallery-item:hover .info { display: block; }
.download-button { display: block; margin: 10px; padding: 10px; background: #007bff; color: #fff;
  text-align: center; text-decoration: none; border-radius: 5px; width: calc(100% - 20px);
  font-size: 14px; box-sizing: border-box; }
.download-button:hover { background: #0056b3; }
.fullscreen { display: none; position: fixed; inset: 0; background: rgba(0,0,0,.9); z-index: 1000;
  justify-content: center; align-items: center; }
.fullscreen img, .fullscreen video { max-width: 90%; max-height: 90%; }
.fullscreen-close { position: absolute; top: 20px; right: 20px; color: #fff; font-size: 24px; cursor: pointer; }
.empty { text-align: center; color: #777; }
"""

_SCRIPT = """
function openFullscreen(id) { document.getElementById(id).style.display = 'flex'; }
function closeFullscreen(ev) {
  if (ev) ev.stopPropagation();
  document.querySelectorAll('.fullscreen').forEach(function (el) {
    el.style.display = 'none';
    el.querySelectorAll('video').forEach(function (v) { v.pause(); });
  });
}
"""


def human_bytes(n: int) -> str:
    step = 1024.0
    units = ["B", "KiB", "MiB", "GiB", "TiB"]
    s = float(n)
    for u in units:
        if s < step or u == units[-1]:
            return f"{s:.0f} {u}" if u == "B" else f"{s:.1f} {u}"
        s /= step
    return f"{n} B"


def date_label(item: MediaItem) -> str:
    if item.has_date:
        return item.upload_date.strftime("%a %b %d %Y")
    return "Unknown Date"


def _media_tag(item: MediaItem, autoplay: bool = False) -> str:
    url = escape(item.url, quote=True)
    if item.kind == "video":
        extra = " autoplay" if autoplay else ""
        return f'<video src="{url}" controls preload="metadata"{extra}></video>'
    return f'<img src="{url}" alt="{escape(item.name, quote=True)}" loading="lazy" />'


def _item_html(idx: int, item: MediaItem) -> str:
    fs_id = f"fullscreen-{idx}"
    return f"""
    <div class="gallery-item" onclick="openFullscreen('{fs_id}')">
      {_media_tag(item)}
      <div class="info">{escape(item.name)}<br>Size: {human_bytes(item.size)}<br>Uploaded: {date_label(item)}</div>
      <a href="{escape(item.url, quote=True)}" download class="download-button" onclick="event.stopPropagation()">Download</a>
    </div>
    <div id="{fs_id}" class="fullscreen" onclick="closeFullscreen(event)">
      <span class="fullscreen-close" onclick="closeFullscreen(event)">&times;</span>
      {_media_tag(item, autoplay=item.kind == "video")}
    </div>"""


def _storage_select(backends: Sequence[str]) -> str:
    if len(backends) < 2:
        return ""
    opts = "".join(f'<option value="{escape(b, quote=True)}">{escape(b)}</option>' for b in backends)
    return f'<select name="storage"><option value="">default</option>{opts}</select>'


def render_gallery(items: Iterable[MediaItem], title: str = "Media Gallery",
                   backends: Sequence[str] = ()) -> str:
    items = list(items)
    body = "".join(_item_html(i, it) for i, it in enumerate(items))
    if not items:
        body = '<p class="empty">No media yet.</p>'
    select = _storage_select(backends)
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{escape(title)}</title>
  <style>{_STYLE}</style>
</head>
<body>
  <h1>{escape(title)}</h1>
  <div class="forms">
    <form action="/upload" method="post" enctype="multipart/form-data">
      <input type="file" name="video" required>
      {select}
      <button type="submit">Upload</button>
    </form>
    <form action="/create-folder" method="post">
      <input type="text" name="folderName" placeholder="New Folder Name" required>
      {select}
      <button type="submit">Create Folder</button>
    </form>
    <form action="/delete-folder" method="post">
      <input type="text" name="folderName" placeholder="Folder to delete" required>
      {select}
      <button type="submit">Delete Folder</button>
    </form>
  </div>
  <div class="gallery">{body}
  </div>
  <script>{_SCRIPT}</script>
</body>
</html>
"""
