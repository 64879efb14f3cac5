"""Tests for document rendering."""

import asyncio

import pytest

from conftest import python_program
from program import Parameter, Program
from render import (
    DirectiveExecutionError,
    DirectiveSyntaxError,
    RenderError,
    RenderValidationError,
    UnresolvedDirectiveError,
)


@pytest.fixture
def programs(echo_program):
    return {
        "echo": echo_program,
        "upper": python_program(
            "upper", "import sys; sys.stdout.write(sys.stdin.read().upper())", stdin="default"
        ),
        "fail": python_program("fail", "import sys; print('broken'); sys.exit(2)"),
    }


class TestTemplateDirectives:
    async def test_run_inserts_output(self, make_renderer, programs):
        renderer = make_renderer(programs)
        rendered = await renderer.render_string('A {{ run("echo", msg="hello") }}B\n')
        assert rendered == "A hello\nB\n"

    async def test_static_value_and_plain_text_survive(self, make_renderer, programs):
        renderer = make_renderer(programs)
        text = "# Title\n\n{{ run('echo') }}\nno directives here\n"
        assert await renderer.render_string(text) == "# Title\n\nhi\n\nno directives here\n"

    async def test_stdin_keyword(self, make_renderer, programs):
        renderer = make_renderer(programs)
        assert await renderer.render_string('{{ run("upper") }}') == "DEFAULT"
        assert await renderer.render_string('{{ run("upper", _stdin="abc") }}') == "ABC"

    async def test_program_lookup_helper(self, make_renderer, programs):
        renderer = make_renderer(programs)
        rendered = await renderer.render_string('{{ program("echo").args[0].value }}')
        assert rendered == "hi"

    async def test_registry_is_not_mutated(self, make_renderer, programs, echo_program):
        before = echo_program.clone()
        renderer = make_renderer(programs)
        await renderer.render_string('{{ run("echo", msg="changed") }}')
        assert renderer.programs["echo"] == before

    async def test_custom_delimiters(self, make_renderer, programs):
        renderer = make_renderer(programs, delimiters=["<<", ">>"])
        rendered = await renderer.render_string('<< run("echo") >> and {{ untouched }}')
        assert rendered == "hi\n and {{ untouched }}"

    @pytest.mark.parametrize(
        "delimiters,directive",
        [(["{{", "}}"], '{{ run("echo") }}'), (["<<", ">>"], '<< run("echo") >>')],
    )
    async def test_braces_outside_delimiters_are_plain_text(
        self, make_renderer, programs, delimiters, directive
    ):
        renderer = make_renderer(programs, delimiters=delimiters)

        anchored = f"## Install {{#install}}\n\n{directive}\n"
        assert await renderer.render_string(anchored) == "## Install {#install}\n\nhi\n\n"

        liquid = f"Jekyll: {{% raw %}}x\n{directive}"
        assert await renderer.render_string(liquid) == "Jekyll: {% raw %}x\nhi\n"

    async def test_statements_use_the_configured_delimiters(self, make_renderer, programs):
        renderer = make_renderer(programs, delimiters=["<<", ">>"])
        text = '<<% if true %>><< run("echo") >><<# note #>>done'
        assert await renderer.render_string(text) == "hi\ndone"

    async def test_disabled_templates_leave_text_alone(self, make_renderer, programs):
        renderer = make_renderer(programs, with_go_template=False)
        text = '{{ run("echo") }}'
        assert await renderer.render_string(text) == text

    async def test_unknown_program_reports_line(self, make_renderer, programs):
        renderer = make_renderer(programs)
        with pytest.raises(UnresolvedDirectiveError, match="unknown program 'nope'") as exc:
            await renderer.render_string('line one\n{{ run("nope") }}\n', source="doc.md")
        assert exc.value.program == "nope"
        assert exc.value.line == 2
        assert str(exc.value).startswith("doc.md:2:")

    async def test_unknown_value_name_fails(self, make_renderer, programs):
        renderer = make_renderer(programs)
        with pytest.raises(DirectiveExecutionError, match="no parameter 'bogus'"):
            await renderer.render_string('{{ run("echo", bogus=1) }}')

    async def test_syntax_error(self, make_renderer, programs):
        renderer = make_renderer(programs)
        with pytest.raises(DirectiveSyntaxError) as exc:
            await renderer.render_string("ok\n{{ run( }}\n", source="doc.md")
        assert exc.value.line == 2

    async def test_non_zero_exit_fails(self, make_renderer, programs):
        renderer = make_renderer(programs)
        with pytest.raises(DirectiveExecutionError, match="exited with status 2") as exc:
            await renderer.render_string('{{ run("fail") }}')
        assert exc.value.output == "broken\n"

    async def test_expected_status_code_is_accepted(self, make_renderer, programs):
        programs["fail"].expected_status_code = 2
        renderer = make_renderer(programs)
        assert await renderer.render_string('{{ run("fail") }}') == "broken\n"


class TestInlinePrograms:
    INLINE = '{{ run({"path": "/bin/echo", "args": [{"name": "m", "value": "x"}]}, m="inline") }}'

    async def test_inline_program_when_allowed(self, make_renderer):
        renderer = make_renderer(allow_program_creation=True)
        assert await renderer.render_string(self.INLINE) == "inline\n"

    async def test_inline_program_is_refused_by_default(self, make_renderer):
        renderer = make_renderer()
        with pytest.raises(UnresolvedDirectiveError, match="inline program creation is disabled"):
            await renderer.render_string(self.INLINE)

    async def test_malformed_inline_program(self, make_renderer):
        renderer = make_renderer(allow_program_creation=True)
        with pytest.raises(DirectiveSyntaxError, match="invalid inline program"):
            await renderer.render_string('{{ run({"path": "/bin/echo", "flags": "oops"}) }}')


class TestMarkerDirectives:
    async def test_marker_block_is_replaced(self, make_renderer, programs):
        renderer = make_renderer(programs)
        text = "before\n```climark\nprogram: echo\nvalues:\n  msg: marker\n```\nafter\n"
        assert await renderer.render_string(text) == "before\nmarker\nafter\n"

    async def test_fence_wraps_output(self, make_renderer, programs):
        renderer = make_renderer(programs)
        text = "```climark\nprogram: upper\nstdin: quiet\nfence: text\n```\n"
        assert await renderer.render_string(text) == "```text\nQUIET\n```\n"

    async def test_markers_and_templates_together(self, make_renderer, programs):
        renderer = make_renderer(programs)
        text = (
            "```climark\nprogram: echo\n```\n"
            "{{% if false %}}\n```climark\nprogram: not-registered\n```\n{{% endif %}}"
            '{{ run("echo", msg="tmpl") }}'
        )
        assert await renderer.render_string(text) == "hi\ntmpl\n"

    async def test_template_lines_count_marker_blocks(self, make_renderer, programs):
        renderer = make_renderer(programs)
        text = "```climark\nprogram: echo\n```\n\n{{ run('missing') }}\n"
        with pytest.raises(UnresolvedDirectiveError) as exc:
            await renderer.render_string(text)
        assert exc.value.line == 5

    async def test_marker_failure_reports_line(self, make_renderer, programs):
        renderer = make_renderer(programs)
        text = "intro\n\n```climark\nprogram: fail\n```\n"
        with pytest.raises(DirectiveExecutionError) as exc:
            await renderer.render_string(text, source="doc.md")
        assert exc.value.line == 3

    async def test_disabled_markers_are_left_alone(self, make_renderer, programs):
        renderer = make_renderer(programs, with_yaml_markers=False)
        text = "```climark\nprogram: echo\n```\n"
        assert await renderer.render_string(text) == text


class TestFiles:
    async def test_render_file_creates_parents(self, tmp_path, write_file, make_renderer, programs):
        source = write_file("doc.tmpl.md", '# Doc\n{{ run("echo") }}')
        target = tmp_path / "out" / "nested" / "doc.md"

        written = await make_renderer(programs).render_file(source, target)

        assert written == target
        assert target.read_text(encoding="utf-8") == "# Doc\nhi\n"

    async def test_failed_render_writes_nothing(self, tmp_path, write_file, make_renderer, programs):
        source = write_file("doc.tmpl.md", '{{ run("nope") }}')
        target = tmp_path / "out" / "doc.md"

        with pytest.raises(UnresolvedDirectiveError):
            await make_renderer(programs).render_file(source, target)
        assert not target.exists()

    async def test_missing_source(self, tmp_path, make_renderer):
        with pytest.raises(RenderError, match="could not read file"):
            await make_renderer().render_file(tmp_path / "absent.md", tmp_path / "out.md")

    @pytest.mark.parametrize("jobs", [1, 3])
    async def test_render_directory_mirrors_tree(self, tmp_path, write_file, make_renderer, programs, jobs):
        write_file("src/a.tmpl.md", '{{ run("echo", msg="a") }}')
        write_file("src/sub/b.tmpl.md", '{{ run("echo", msg="b") }}')
        write_file("src/sub/skip.md", '{{ run("nope") }}')

        written = await make_renderer(programs, jobs=jobs).render_directory(
            tmp_path / "src", tmp_path / "out"
        )

        assert sorted(written) == [tmp_path / "out/a.tmpl.md", tmp_path / "out/sub/b.tmpl.md"]
        assert (tmp_path / "out/sub/b.tmpl.md").read_text(encoding="utf-8") == "b\n"
        assert not (tmp_path / "out/sub/skip.md").exists()

    async def test_render_directory_propagates_first_failure(self, tmp_path, write_file, make_renderer, programs):
        write_file("src/a.tmpl.md", "fine")
        write_file("src/b.tmpl.md", '{{ run("fail") }}')

        with pytest.raises(DirectiveExecutionError):
            await make_renderer(programs, jobs=2).render_directory(tmp_path / "src", tmp_path / "out")

    async def test_render_directory_requires_output(self, tmp_path, make_renderer):
        with pytest.raises(RenderValidationError):
            await make_renderer().render_directory(tmp_path, "")

    async def test_render_file_refuses_to_overwrite_source(self, write_file, make_renderer, programs):
        source = write_file("doc.tmpl.md", '{{ run("echo") }}')
        with pytest.raises(RenderValidationError, match="source document itself"):
            await make_renderer(programs).render_file(source, source.parent / "." / source.name)
        assert source.read_text(encoding="utf-8") == '{{ run("echo") }}'

    async def test_render_directory_refuses_its_own_root(self, tmp_path, write_file, make_renderer):
        write_file("docs/a.tmpl.md", "a")
        with pytest.raises(RenderValidationError, match="would overwrite"):
            await make_renderer().render_directory(tmp_path / "docs", tmp_path / "docs")

    async def test_render_directory_skips_nested_output(self, tmp_path, write_file, make_renderer, programs):
        write_file("docs/a.tmpl.md", '{{ run("echo", msg="fresh") }}')
        write_file("docs/out/a.tmpl.md", "fresh\n")

        written = await make_renderer(programs).render_directory(tmp_path / "docs", tmp_path / "docs/out")

        assert written == [tmp_path / "docs/out/a.tmpl.md"]
        assert not (tmp_path / "docs/out/out").exists()

    async def test_render_directory_into_working_directory(
        self, tmp_path, write_file, make_renderer, monkeypatch
    ):
        write_file("docs/a.tmpl.md", "a")
        monkeypatch.chdir(tmp_path)

        written = await make_renderer().render_directory("docs", ".")

        assert [str(p) for p in written] == ["a.tmpl.md"]
        assert (tmp_path / "a.tmpl.md").read_text(encoding="utf-8") == "a"


class TestRenderPaths:
    async def test_output_file_with_single_input(self, tmp_path, write_file, make_renderer, programs):
        source = write_file("doc.md", '{{ run("echo") }}')
        written = await make_renderer(programs).render_paths([source], output_file=tmp_path / "x.md")
        assert written == [tmp_path / "x.md"]

    async def test_file_inputs_go_below_output_directory(self, tmp_path, write_file, make_renderer):
        one = write_file("a/one.md", "1")
        two = write_file("b/two.md", "2")
        written = await make_renderer().render_paths([one, two], output_directory=tmp_path / "out")
        assert written == [tmp_path / "out/one.md", tmp_path / "out/two.md"]

    async def test_output_file_rejects_multiple_inputs(self, tmp_path, write_file, make_renderer):
        one = write_file("one.md", "1")
        two = write_file("two.md", "2")
        with pytest.raises(RenderValidationError, match="single input"):
            await make_renderer().render_paths([one, two], output_file=tmp_path / "x.md")

    async def test_validates_everything_before_rendering(
        self, tmp_path, write_file, make_renderer, monkeypatch
    ):
        doc = write_file("doc.md", "1")
        workdir = tmp_path / "work"
        workdir.mkdir()
        monkeypatch.chdir(workdir)
        with pytest.raises(RenderValidationError, match="output directory is required"):
            await make_renderer().render_paths([doc, tmp_path])
        assert not (workdir / "doc.md").exists()

    async def test_default_output_directory_keeps_source(
        self, tmp_path, write_file, make_renderer, programs, monkeypatch
    ):
        write_file("doc.tmpl.md", '{{ run("echo") }}\n')
        monkeypatch.chdir(tmp_path)

        with pytest.raises(RenderValidationError, match="source document itself"):
            await make_renderer(programs).render_paths(["doc.tmpl.md"], output_directory=".")
        assert (tmp_path / "doc.tmpl.md").read_text(encoding="utf-8") == '{{ run("echo") }}\n'

    async def test_source_checks_run_before_rendering(self, tmp_path, write_file, make_renderer):
        first = write_file("a/one.md", "1")
        second = write_file("b/two.md", "2")
        with pytest.raises(RenderValidationError):
            await make_renderer().render_paths([first, second], output_directory=tmp_path / "b")
        assert not (tmp_path / "b/one.md").exists()

    async def test_directory_input_cannot_be_its_own_output(self, tmp_path, write_file, make_renderer):
        write_file("docs/a.tmpl.md", "a")
        with pytest.raises(RenderValidationError, match="would overwrite"):
            await make_renderer().render_paths([tmp_path / "docs"], output_directory=tmp_path / "docs")

    async def test_missing_input(self, tmp_path, make_renderer):
        with pytest.raises(RenderValidationError, match="no such file"):
            await make_renderer().render_paths([tmp_path / "ghost.md"], output_directory=tmp_path)


async def test_reload_does_not_affect_render_in_progress(make_renderer, programs):
    slow = python_program("slow", "import time; time.sleep(0.5); print('old')")
    renderer = make_renderer({**programs, "slow": slow})

    task = asyncio.create_task(
        renderer.render_string('{{ run("slow") }}{{ run("echo", msg="after") }}')
    )
    await asyncio.sleep(0.1)
    renderer.reload({"echo": Program(name="echo", args=[Parameter(name="msg", value="new")])})

    assert await task == "old\nafter\n"
    assert sorted(renderer.programs) == ["echo"]
