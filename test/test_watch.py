"""Tests for watch mode."""

import asyncio

import pytest

from render import PollingWatcher, RenderValidationError, WatchCoordinator


async def wait_for_file(path, content=None, timeout=5.0):
    """Poll until path exists (with the given content, if any)."""
    deadline = asyncio.get_running_loop().time() + timeout
    while asyncio.get_running_loop().time() < deadline:
        if path.exists() and (content is None or path.read_text(encoding="utf-8") == content):
            return
        await asyncio.sleep(0.05)
    raise AssertionError(f"{path} never appeared with the expected content")


@pytest.fixture
def coordinator(tmp_path, make_renderer, echo_program):
    def _make(**kwargs):
        kwargs.setdefault("interval", 0.05)
        renderer = make_renderer({"echo": echo_program})
        return WatchCoordinator(renderer, [tmp_path / "docs"], tmp_path / "out", **kwargs)

    (tmp_path / "docs").mkdir()
    return _make


def test_requires_output_directory(make_renderer, tmp_path):
    with pytest.raises(RenderValidationError):
        WatchCoordinator(make_renderer(), [tmp_path], None)


def test_file_root_cannot_render_onto_itself(make_renderer, tmp_path, write_file):
    source = write_file("doc.tmpl.md", "text")
    with pytest.raises(RenderValidationError, match="its own output"):
        WatchCoordinator(make_renderer(), [source], tmp_path)


def test_directory_root_cannot_be_the_output(make_renderer, tmp_path):
    with pytest.raises(RenderValidationError, match="its own output"):
        WatchCoordinator(make_renderer(), [tmp_path], tmp_path)


def test_output_path_mirrors_root(tmp_path, coordinator):
    watch = coordinator()
    assert watch.output_path(tmp_path / "docs/sub/a.tmpl.md") == tmp_path / "out/sub/a.tmpl.md"


async def test_handle_change_renders(tmp_path, write_file, coordinator):
    source = write_file("docs/a.tmpl.md", '{{ run("echo", msg="watched") }}')

    output = await coordinator().handle_change(source)

    assert output == tmp_path / "out/a.tmpl.md"
    assert output.read_text(encoding="utf-8") == "watched\n"


async def test_handle_change_reports_failures(tmp_path, write_file, coordinator):
    source = write_file("docs/a.tmpl.md", '{{ run("missing") }}')

    assert await coordinator().handle_change(source) is None
    assert not (tmp_path / "out/a.tmpl.md").exists()


async def test_nested_output_is_not_rerendered(tmp_path, write_file, make_renderer, echo_program):
    source = write_file("docs/a.tmpl.md", '{{ run("echo", msg="once") }}')
    earlier = write_file("docs/out/a.tmpl.md", "once\n")
    watch = WatchCoordinator(
        make_renderer({"echo": echo_program}), [tmp_path / "docs"], tmp_path / "docs/out", interval=0.05
    )

    assert await watch.handle_change(earlier) is None
    assert not (tmp_path / "docs/out/out").exists()
    assert await watch.handle_change(source) == earlier


async def test_polling_watcher_reports_new_and_modified_files(tmp_path, write_file):
    first = write_file("docs/a.tmpl.md", "a")
    watcher = PollingWatcher([tmp_path / "docs"], ["**/*.tmpl.md"], interval=0.05)
    seen = []

    async def collect():
        async for path in watcher.changes():
            seen.append(path)

    task = asyncio.create_task(collect())
    await asyncio.sleep(0.2)
    second = write_file("docs/b.tmpl.md", "b")
    write_file("docs/ignored.md", "x")
    await asyncio.sleep(0.2)
    first.write_text("changed", encoding="utf-8")
    await asyncio.sleep(0.2)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert seen == [second, first]


async def test_run_renders_initially_and_on_change(tmp_path, write_file, coordinator):
    source = write_file("docs/a.tmpl.md", '{{ run("echo", msg="one") }}')
    write_file("docs/broken.tmpl.md", '{{ run("missing") }}')
    task = asyncio.create_task(coordinator().run())

    target = tmp_path / "out/a.tmpl.md"
    await wait_for_file(target, "one\n")
    # Let the watcher take its first snapshot
    await asyncio.sleep(0.3)

    source.write_text('{{ run("echo", msg="second") }}', encoding="utf-8")
    await wait_for_file(target, "second\n")

    write_file("docs/new/b.tmpl.md", "plain")
    await wait_for_file(tmp_path / "out/new/b.tmpl.md", "plain")

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


async def test_initial_render_can_be_disabled(tmp_path, write_file, coordinator):
    write_file("docs/a.tmpl.md", "text")
    task = asyncio.create_task(coordinator(initial_render=False).run())
    await asyncio.sleep(0.3)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert not (tmp_path / "out/a.tmpl.md").exists()


async def test_repository_changes_reload_programs(tmp_path, write_file, coordinator):
    write_file("repo/greet.yaml", "name: greet\npath: /bin/echo\nargs:\n  - name: m\n    value: v1\n")
    watch = coordinator(repositories=[tmp_path / "repo"], initial_render=False)
    task = asyncio.create_task(watch.run())
    await asyncio.sleep(0.2)

    write_file("repo/greet.yaml", "name: greet\npath: /bin/echo\nargs:\n  - name: m\n    value: version2\n")
    for _ in range(100):
        if "greet" in watch.renderer.programs:
            break
        await asyncio.sleep(0.05)
    assert watch.renderer.programs["greet"].args[0].value == "version2"

    write_file("docs/a.tmpl.md", '{{ run("greet") }}')
    await wait_for_file(tmp_path / "out/a.tmpl.md", "version2\n")

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


async def test_failed_reload_keeps_registry(tmp_path, write_file, coordinator):
    write_file("repo/bad.yaml", "name: [broken\n")
    watch = coordinator(repositories=[tmp_path / "repo"])

    assert await watch.reload_repositories() is False
    assert sorted(watch.renderer.programs) == ["echo"]
