from gatc_extract.surfaces import AdSurface, select_surface, surfaces_from_probe


def _surface(**kw) -> AdSurface:
    base = dict(frame=None, root_index=0, width=300, height=250, visible=True)
    base.update(kw)
    return AdSurface(**base)


def test_select_surface_skips_hidden_candidates():
    hidden = _surface(root_index=0, visible=False, has_image=True, title_text="Hidden", desc_text="Hidden")
    shown = _surface(root_index=1)
    assert select_surface([hidden, shown]) is shown


def test_select_surface_requires_structure_when_asked():
    bare = _surface(root_index=0)
    no_desc = _surface(root_index=1, has_image=True, title_text="Royal Match", desc_text="")
    full = _surface(root_index=2, has_image=True, title_text="Royal Match", desc_text="Match and win")
    assert not no_desc.structure_valid
    assert full.structure_valid
    assert select_surface([bare, no_desc, full], require_structure=True) is full
    assert select_surface([bare, no_desc], require_structure=True) is None


def test_surfaces_from_probe_respects_frame_visibility():
    rows = [{"index": 0, "width": 320, "height": 480, "visible": True, "hasImage": True, "titleText": "T"}]
    assert surfaces_from_probe(None, rows)[0].visible
    assert not surfaces_from_probe(None, rows, frame_visible=False)[0].visible
    assert surfaces_from_probe(None, None) == []
