"""Tests for the command line entry point."""

import argparse

import pytest

import main as cli


def args_for(urls=(), url_file=None):
    return argparse.Namespace(urls=list(urls), url_file=url_file)


def test_read_urls_merges_file(tmp_path):
    url_file = tmp_path / "urls.txt"
    url_file.write_text("# staging\nhttp://b.test/\n\n  http://c.test/  \n")
    urls = cli.read_urls(args_for(["http://a.test/"], url_file))
    assert urls == ["http://a.test/", "http://b.test/", "http://c.test/"]


def test_progress_printed_in_ten_percent_steps(capsys):
    on_progress = cli.progress_printer()
    for completed in range(1, 41):
        on_progress(completed / 40)
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err.splitlines() == [f"Progress: {p}%" for p in range(10, 101, 10)]


def test_urls_are_required(monkeypatch):
    monkeypatch.setattr("sys.argv", ["main.py"])
    with pytest.raises(SystemExit) as exc:
        cli.main()
    assert exc.value.code == 2
