import signal

from sparse_rprop import CancellationFlag, install_sigint_handler


def test_flag_set_and_clear():
    flag = CancellationFlag()
    assert not flag.is_set()
    assert not flag
    flag.set()
    assert flag.is_set()
    assert flag
    flag.clear()
    assert not flag.is_set()


def test_sigint_handler_sets_flag_then_restores_default():
    flag = CancellationFlag()
    previous = install_sigint_handler(flag)
    try:
        handler = signal.getsignal(signal.SIGINT)
        assert callable(handler)
        handler(signal.SIGINT, None)
        assert flag.is_set()
        assert signal.getsignal(signal.SIGINT) is signal.default_int_handler
    finally:
        signal.signal(signal.SIGINT, previous)
