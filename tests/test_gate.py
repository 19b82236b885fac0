import asyncio

from gatc_extract.gate import ResourceGate, VideoIdSlot


def test_should_allow_ad_images_but_not_trackers():
    gate = ResourceGate()
    assert gate.should_allow("https://tpc.googlesyndication.com/simgad/123", "image")
    assert not gate.should_allow("https://www.google-analytics.com/collect?v=1", "script")
    assert not gate.should_allow("https://cdn.example.com/logo.png", "image")
    assert not gate.should_allow("https://fonts.gstatic.com/font.woff2", "font")
    assert gate.should_allow("https://adstransparency.google.com/anji/_/js/app.js", "script")
    assert gate.should_allow("https://rr1---sn-x.googlevideo.com/videoplayback?id=0123456789abcdef", "media")


def test_video_slot_keeps_first_id():
    slot = VideoIdSlot()
    assert slot.observe("https://www.youtube.com/embed/dQw4w9WgXcQ") == "dQw4w9WgXcQ"
    slot.observe("https://www.youtube.com/embed/aaaaaaaaaaa")
    assert slot.value == "dQw4w9WgXcQ"
    assert slot.observe("https://example.com/") is None


def test_video_slot_wait_returns_when_captured():
    async def scenario():
        slot = VideoIdSlot()

        async def later():
            await asyncio.sleep(0.01)
            slot.capture("dQw4w9WgXcQ")

        task = asyncio.create_task(later())
        value = await slot.wait(1.0)
        await task
        return value

    assert asyncio.run(scenario()) == "dQw4w9WgXcQ"


def test_video_slot_wait_times_out():
    assert asyncio.run(VideoIdSlot().wait(0.01)) is None
