import threading

from beady.runtime.lifecycle import ProcessLifecycle


def test_exit_records_first_code_only():
    lifecycle = ProcessLifecycle()

    lifecycle.exit(1)
    lifecycle.exit(0)

    assert lifecycle.exit_code == 1
    assert lifecycle.stopped


def test_shutdown_hooks_run_once():
    lifecycle = ProcessLifecycle()
    calls = []
    lifecycle.add_shutdown_hook(lambda: calls.append("listener"))

    lifecycle.exit(0)
    lifecycle.exit(0)

    assert calls == ["listener"]


def test_failing_hook_does_not_block_others(capsys):
    lifecycle = ProcessLifecycle()
    calls = []

    def broken():
        raise RuntimeError("listener already closed")

    lifecycle.add_shutdown_hook(broken)
    lifecycle.add_shutdown_hook(lambda: calls.append("second"))

    lifecycle.exit(0)

    assert calls == ["second"]
    assert "Shutdown hook failed: listener already closed" in capsys.readouterr().err


def test_wait_unblocks_on_exit_from_another_thread():
    lifecycle = ProcessLifecycle()

    assert lifecycle.wait(timeout=0.01) is False
    threading.Timer(0.05, lifecycle.exit, args=(0,)).start()

    assert lifecycle.wait(timeout=2) is True
    assert lifecycle.exit_code == 0
