from __future__ import annotations

from typing import List, Optional

import pytest

from overlay_engine import EngineDisposedError, OverlayEngine, UnknownAnchorError
from overlay_engine.document import (
    DocumentTree,
    Mapping,
    StepMap,
    Transaction,
    TransactionBuilder,
    code_block,
    paragraph,
)
from overlay_engine.overlay import OverlayOrigin, WidgetDescriptor
from overlay_engine.runtime import EngineConfig, RebuildPolicy
from overlay_engine.widgets import (
    ContainerTeardownError,
    ManualTicker,
    RunOutcome,
    RunnerUnavailableError,
    WidgetContainer,
)


class RecordingRenderer:
    def __init__(self, *, failing: tuple[int, ...] = ()) -> None:
        self.failing = failing
        self.mounted: List[int] = []
        self.rendered: List[tuple[int, str]] = []
        self.unmounted: List[int] = []

    def mount(self, container: WidgetContainer) -> None:
        self.mounted.append(container.anchor)

    def render(self, container: WidgetContainer, descriptor: WidgetDescriptor) -> None:
        self.rendered.append((container.anchor, descriptor.payload.source))

    def unmount(self, container: WidgetContainer) -> None:
        self.unmounted.append(container.anchor)
        if container.anchor in self.failing:
            raise RuntimeError(f"unmount failed at {container.anchor}")


class FakeRunner:
    def __init__(self, outcome: Optional[RunOutcome] = None, error: Exception | None = None) -> None:
        self.outcome = outcome or RunOutcome()
        self.error = error
        self.calls: List[tuple[str, str]] = []

    def run(self, source: str, language: str) -> RunOutcome:
        self.calls.append((source, language))
        if self.error is not None:
            raise self.error
        return self.outcome


def make_engine(
    *,
    renderer: Optional[RecordingRenderer] = None,
    config: Optional[EngineConfig] = None,
    **kwargs: object,
) -> tuple[OverlayEngine, RecordingRenderer, ManualTicker]:
    renderer = renderer or RecordingRenderer()
    ticker = ManualTicker()
    engine = OverlayEngine(
        config=config, renderer=renderer, ticker=ticker, **kwargs  # type: ignore[arg-type]
    )
    return engine, renderer, ticker


def make_scenario_tree() -> DocumentTree:
    # code block at position 5 with size 20 -> anchor 25
    return DocumentTree.from_blocks(paragraph("abc"), code_block("x" * 18, "python"))


def test_end_to_end_init_remap_rebuild() -> None:
    engine, renderer, _ticker = make_engine()
    tree = make_scenario_tree()

    overlay = engine.init(tree)

    assert [d.anchor for d in overlay] == [25]
    assert engine.cache.keys() == frozenset({25})
    container = engine.cache.get(25)

    shifted = DocumentTree.from_blocks(
        paragraph("abcdef"), code_block("x" * 18, "python"), version=1
    )
    remap = Transaction(
        before=tree,
        after=shifted,
        mapping=Mapping([StepMap(3, 0, 3)]),
        doc_changed=False,
    )
    overlay = engine.apply(remap, overlay)

    assert overlay.origin is OverlayOrigin.REMAPPED
    assert [d.anchor for d in overlay] == [28]
    assert engine.cache.keys() == frozenset({28})
    assert engine.cache.get(28) is container
    assert renderer.mounted == [25]

    retype = TransactionBuilder(shifted).set_node_attrs(8, language="go").build()
    overlay = engine.apply(retype, overlay)

    assert len(overlay) == 0
    assert len(engine.cache) == 0
    assert renderer.unmounted == [28]
    assert container is not None and container.is_destroyed


def test_remap_path_skips_scanner_and_reconcile_churn(monkeypatch: pytest.MonkeyPatch) -> None:
    engine, renderer, _ticker = make_engine()
    tree = make_scenario_tree()
    overlay = engine.init(tree)

    def fail_scan(*_args: object, **_kwargs: object) -> None:
        raise AssertionError("scanner must not run on the remap path")

    monkeypatch.setattr("overlay_engine.engine.scan_blocks", fail_scan)
    remapped = engine.apply(Transaction.selection_only(tree, 2), overlay)

    assert len(remapped) == len(overlay)
    assert [d.anchor for d in remapped] == [25]
    assert renderer.mounted == [25]
    assert renderer.unmounted == []


def test_rebuild_preserves_identity_for_unmoved_anchors() -> None:
    engine, renderer, _ticker = make_engine()
    tree = DocumentTree.from_blocks(code_block("x", "python"), paragraph("abc"))
    engine.init(tree)
    container = engine.cache.get(3)

    edit = TransactionBuilder(tree).insert_text(4, "!").build()
    overlay = engine.apply(edit)

    assert overlay.origin is OverlayOrigin.BUILT
    assert engine.cache.get(3) is container
    assert renderer.mounted == [3]


def test_cache_equals_active_set_after_every_transaction() -> None:
    engine, _renderer, _ticker = make_engine()
    tree = DocumentTree.from_blocks(
        code_block("a", "python"), paragraph("p"), code_block("b", "py")
    )
    engine.init(tree)

    builder = TransactionBuilder(tree)
    builder.insert_node(0, code_block("new", "python"))
    builder.set_node_attrs(5, language="rust")
    overlay = engine.apply(builder.build())

    assert engine.cache.keys() == overlay.active_positions
    assert [d.payload.source for d in overlay] == ["new", "b"]


def test_render_is_deferred_and_coalesced() -> None:
    engine, renderer, ticker = make_engine()
    tree = make_scenario_tree()
    engine.init(tree)

    first = TransactionBuilder(tree).insert_text(6, "y").build()
    engine.apply(first)
    second = TransactionBuilder(first.after).insert_text(6, "z").build()
    engine.apply(second)

    assert renderer.rendered == []
    assert ticker.pending == 1

    ticker.tick()

    assert renderer.rendered == [(27, "zy" + "x" * 18)]


def test_render_skips_detached_containers() -> None:
    engine, renderer, ticker = make_engine()
    tree = DocumentTree.from_blocks(code_block("a", "python"), code_block("b", "python"))
    engine.init(tree)
    engine.cache.get(3).detach()  # type: ignore[union-attr]

    ticker.tick()

    assert renderer.rendered == [(6, "b")]


def test_render_can_be_called_repeatedly() -> None:
    engine, renderer, _ticker = make_engine()
    engine.init(make_scenario_tree())

    assert engine.render() == 1
    assert engine.render() == 1
    assert renderer.rendered == [(25, "x" * 18), (25, "x" * 18)]
    assert engine.cache.get(25).render_count == 2  # type: ignore[union-attr]


def test_render_through_explicit_view() -> None:
    engine, renderer, _ticker = make_engine()
    engine.init(make_scenario_tree())
    view = RecordingRenderer()

    engine.render(view)

    assert view.rendered == [(25, "x" * 18)]
    assert renderer.rendered == []


def test_destroy_unmounts_everything_and_cancels_render() -> None:
    engine, renderer, ticker = make_engine()
    tree = DocumentTree.from_blocks(code_block("a", "python"), code_block("b", "python"))
    engine.init(tree)

    engine.destroy()
    ticker.tick()

    assert renderer.unmounted == [3, 6]
    assert renderer.rendered == []
    assert len(engine.cache) == 0
    assert engine.overlay is None
    with pytest.raises(EngineDisposedError):
        engine.apply(Transaction.selection_only(tree))
    engine.destroy()


def test_teardown_failures_escalate_after_reconcile_finishes() -> None:
    engine, renderer, _ticker = make_engine(renderer=RecordingRenderer(failing=(3,)))
    tree = DocumentTree.from_blocks(code_block("a", "python"), code_block("b", "python"))
    engine.init(tree)
    builder = TransactionBuilder(tree)
    builder.set_node_attrs(0, language="go").set_node_attrs(3, language="go")

    with pytest.raises(ContainerTeardownError) as excinfo:
        engine.apply(builder.build())

    assert [failure.anchor for failure in excinfo.value.failures] == [3]
    assert renderer.unmounted == [3, 6]
    assert len(engine.cache) == 0
    assert engine.overlay is not None and len(engine.overlay) == 0


def test_teardown_failures_go_to_error_handler() -> None:
    errors: List[Exception] = []
    engine, _renderer, _ticker = make_engine(
        renderer=RecordingRenderer(failing=(3,)), error_handler=errors.append
    )
    engine.init(DocumentTree.from_blocks(code_block("a", "python")))

    engine.destroy()

    assert len(errors) == 1
    assert isinstance(errors[0], ContainerTeardownError)


def test_touched_blocks_policy_remaps_unrelated_edits() -> None:
    config = EngineConfig(rebuild_policy=RebuildPolicy.TOUCHED_BLOCKS)
    engine, renderer, _ticker = make_engine(config=config)
    tree = DocumentTree.from_blocks(paragraph("abc"), code_block("x = 1", "python"))
    engine.init(tree)
    container = engine.cache.get(12)

    overlay = engine.apply(TransactionBuilder(tree).insert_text(1, "zz").build())

    assert overlay.origin is OverlayOrigin.REMAPPED
    assert engine.cache.get(14) is container
    assert renderer.mounted == [12]


def test_touched_blocks_policy_rebuilds_code_edits() -> None:
    config = EngineConfig(rebuild_policy=RebuildPolicy.TOUCHED_BLOCKS)
    engine, _renderer, _ticker = make_engine(config=config)
    tree = DocumentTree.from_blocks(paragraph("abc"), code_block("x = 1", "python"))
    engine.init(tree)

    overlay = engine.apply(TransactionBuilder(tree).insert_text(7, "yy").build())

    assert overlay.origin is OverlayOrigin.BUILT
    assert overlay.descriptors[0].payload.source == "xyy = 1"
    assert engine.cache.keys() == frozenset({14})


def test_decorations_expose_cached_containers() -> None:
    engine, _renderer, _ticker = make_engine()
    engine.init(make_scenario_tree())

    (decoration,) = engine.decorations()

    assert decoration.anchor == 25
    assert decoration.factory() is engine.cache.get(25)
    assert decoration.spec.payload.language == "python"


def test_request_run_stores_outcome_that_survives_remap() -> None:
    runner = FakeRunner(RunOutcome(output="45\n"))
    engine, renderer, ticker = make_engine(runner=runner)
    tree = make_scenario_tree()
    overlay = engine.init(tree)
    ticker.tick()

    outcome = engine.request_run(25)
    engine.apply(Transaction.selection_only(tree, 1), overlay)

    container = engine.cache.get(25)
    assert outcome.output == "45\n"
    assert runner.calls == [("x" * 18, "python")]
    assert container is not None
    assert container.run.running is False
    assert container.run.output == "45\n"
    assert ticker.pending == 1


def test_request_run_reports_runner_errors_as_output() -> None:
    engine, _renderer, _ticker = make_engine(runner=FakeRunner(error=ValueError("boom")))
    engine.init(make_scenario_tree())

    outcome = engine.request_run(25)

    assert outcome.error == "boom"
    assert engine.cache.get(25).run.error == "boom"  # type: ignore[union-attr]


def test_request_run_requires_runner_and_known_anchor() -> None:
    engine, _renderer, _ticker = make_engine()
    engine.init(make_scenario_tree())

    with pytest.raises(RunnerUnavailableError):
        engine.request_run(25)

    engine.runner = FakeRunner()
    with pytest.raises(UnknownAnchorError):
        engine.request_run(99)


def test_finish_run_for_destroyed_widget_is_dropped() -> None:
    engine, _renderer, _ticker = make_engine()
    tree = make_scenario_tree()
    engine.init(tree)
    ticket = engine.start_run(25)
    engine.apply(TransactionBuilder(tree).set_node_attrs(5, language="go").build())

    assert engine.finish_run(ticket, RunOutcome(output="late")) is False
    assert ticket.container.run.output == ""


def test_run_result_follows_container_across_remap() -> None:
    config = EngineConfig(rebuild_policy=RebuildPolicy.TOUCHED_BLOCKS)
    engine, _renderer, _ticker = make_engine(config=config)
    tree = DocumentTree.from_blocks(paragraph("abc"), code_block("x = 1", "python"))
    engine.init(tree)
    ticket = engine.start_run(12)

    engine.apply(TransactionBuilder(tree).insert_text(1, "zz").build())

    assert ticket.anchor == 14
    assert engine.finish_run(ticket, RunOutcome(output="done")) is True
    container = engine.cache.get(14)
    assert container is ticket.container
    assert container.run.running is False
    assert container.run.output == "done"


def test_run_result_survives_remap_of_scenario_block() -> None:
    engine, _renderer, _ticker = make_engine()
    tree = make_scenario_tree()
    overlay = engine.init(tree)
    ticket = engine.start_run(25)

    shifted = DocumentTree.from_blocks(
        paragraph("abcdef"), code_block("x" * 18, "python"), version=1
    )
    engine.apply(
        Transaction(before=tree, after=shifted, mapping=Mapping([StepMap(3, 0, 3)])),
        overlay,
    )

    assert engine.finish_run(ticket, RunOutcome(error="boom")) is True
    assert engine.cache.get(28).run.error == "boom"  # type: ignore[union-attr]


@pytest.mark.parametrize(
    "policy", [RebuildPolicy.ANY_CHANGE, RebuildPolicy.TOUCHED_BLOCKS]
)
def test_retyping_paragraph_into_code_block_creates_widget(policy: RebuildPolicy) -> None:
    engine, renderer, _ticker = make_engine(config=EngineConfig(rebuild_policy=policy))
    tree = DocumentTree.from_blocks(paragraph("abc"), paragraph("x = 1"))
    engine.init(tree)

    builder = TransactionBuilder(tree)
    builder.set_node_kind(5, "code_block").set_node_attrs(5, language="python")
    overlay = engine.apply(builder.build())

    assert overlay.origin is OverlayOrigin.BUILT
    assert [d.anchor for d in overlay] == [12]
    assert [d.payload.source for d in overlay] == ["x = 1"]
    assert renderer.mounted == [12]


def test_failed_mount_keeps_previous_state() -> None:
    class FailingMount(RecordingRenderer):
        def mount(self, container: WidgetContainer) -> None:
            if container.anchor == 12:
                raise RuntimeError("no room for widget")
            super().mount(container)

    renderer = FailingMount()
    engine, _renderer, _ticker = make_engine(renderer=renderer)
    tree = DocumentTree.from_blocks(code_block("a", "python"), paragraph("b"))
    previous = engine.init(tree)

    builder = TransactionBuilder(tree)
    builder.insert_node(6, code_block("c", "python"), code_block("d", "python"))
    with pytest.raises(RuntimeError):
        engine.apply(builder.build())

    assert engine.overlay is previous
    assert engine.tree is tree
    assert engine.cache.keys() == frozenset({3})
    assert renderer.mounted == [3, 9]
    assert renderer.unmounted == [9]


def test_engine_events_follow_paths() -> None:
    engine, _renderer, ticker = make_engine()
    seen: List[str] = []
    for name in ("overlay.built", "overlay.remapped", "render.flushed"):
        engine.bus.subscribe(name, lambda _payload, name=name: seen.append(name))
    tree = make_scenario_tree()

    engine.init(tree)
    engine.apply(Transaction.selection_only(tree))
    ticker.tick()

    assert seen == ["overlay.built", "overlay.remapped", "render.flushed"]
