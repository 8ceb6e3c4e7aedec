from mtwire.logger import Logger, LogLevel


def test_info_line_has_label_prefix_and_message(capsys):
    Logger("svc").set_level(LogLevel.INFO).info("hello")
    err = capsys.readouterr().err
    assert "[info] " in err
    assert " svc - hello" in err
    assert "\033[0;32m" in err


def test_debug_suppressed_at_info_level(capsys):
    Logger("svc").set_level(LogLevel.INFO).debug("hidden")
    assert capsys.readouterr().err == ""


def test_warn_suppressed_at_error_level_but_error_shown(capsys):
    logger = Logger("svc").set_level(LogLevel.ERROR)
    logger.warn("quiet")
    logger.error("loud")
    err = capsys.readouterr().err
    assert "quiet" not in err
    assert "loud" in err
    assert "[error]" in err


def test_no_level_silences_everything_but_trace_and_panic(capsys):
    logger = Logger("svc").set_level(LogLevel.NONE)
    logger.error("e")
    logger.info("i")
    logger.trace("t")
    err = capsys.readouterr().err
    assert "[error]" not in err
    assert "[info]" not in err
    assert "[trace]" in err


def test_no_color_removes_escapes(capsys):
    logger = Logger("svc").no_color()
    assert logger.color is False
    logger.info("plain")
    err = capsys.readouterr().err
    assert "\033" not in err
    assert "[info]  svc - plain" in err


def test_color_enabled_by_default():
    assert Logger("x").color is True


def test_set_prefix_changes_output(capsys):
    logger = Logger("old")
    assert logger.set_prefix("new") is logger
    logger.no_color().info("m")
    err = capsys.readouterr().err
    assert " new - m" in err
    assert "old" not in err


def test_multiple_args_are_joined_like_sprint(capsys):
    Logger("p").no_color().info("count", 3, 4)
    assert "p - count3 4" in capsys.readouterr().err


def test_bool_and_none_formatting(capsys):
    Logger("p").no_color().info(True)
    assert "p - true" in capsys.readouterr().err


def test_panic_logs_regardless_of_level(capsys):
    Logger("p").set_level(LogLevel.NONE).panic("boom")
    err = capsys.readouterr().err
    assert "[panic]" in err
    assert "boom" in err
    assert "test_panic_logs_regardless_of_level" in err