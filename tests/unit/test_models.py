from peerlink_console.core.enums import MessageKind, Sender
from peerlink_console.core.models import FileHandle, FileMeta, Message, ReplyReference


def test_models_construct() -> None:
    message = Message(id="m1", sender=Sender.LOCAL, content="hello")

    assert message.kind == MessageKind.TEXT
    assert message.status is None
    assert not message.edited and not message.deleted
    assert message.visible_content == "hello"
    assert message.created_at.tzinfo is not None


def test_reply_preview_truncates_long_text() -> None:
    message = Message(id="m1", sender=Sender.REMOTE, content="x" * 60)
    reference = ReplyReference.from_message(message)

    assert reference.content == "x" * 50 + "..."
    assert reference.sender == Sender.REMOTE


def test_reply_preview_keeps_short_text() -> None:
    message = Message(id="m1", sender=Sender.LOCAL, content="y" * 50)
    assert ReplyReference.from_message(message).content == "y" * 50


def test_reply_preview_for_file() -> None:
    handle = FileHandle(name="map.png", mime_type="image/png", data=b"\x89PNG")
    message = Message(
        id="f1",
        sender=Sender.LOCAL,
        content="Sending file: map.png",
        kind=MessageKind.FILE,
        file=FileMeta(name="map.png", size=4, mime_type="image/png", handle=handle),
    )
    assert ReplyReference.from_message(message).content == "[FILE] map.png"


def test_file_handle_repr_hides_data() -> None:
    handle = FileHandle(name="a.bin", mime_type="application/octet-stream", data=b"secret")
    assert "secret" not in repr(handle)


def test_file_handle_save_keeps_base_name_only(tmp_path) -> None:
    handle = FileHandle(name="../../etc/notes.txt", mime_type="text/plain", data=b"hi")
    target = handle.save(tmp_path / "dl")

    assert target == tmp_path / "dl" / "notes.txt"
    assert target.read_bytes() == b"hi"


def test_file_handle_save_uses_fallback_for_unusable_names(tmp_path) -> None:
    for name in ("", ".", ".."):
        handle = FileHandle(name=name, mime_type="application/octet-stream", data=b"x")
        target = handle.save(tmp_path, fallback_name="file-f1")
        assert target.parent == tmp_path
        assert target.is_file()
        assert target.name.startswith("file-f1")


def test_file_handle_save_does_not_overwrite(tmp_path) -> None:
    (tmp_path / "report.csv").write_bytes(b"old")
    handle = FileHandle(name="report.csv", mime_type="text/csv", data=b"new")

    first = handle.save(tmp_path)
    second = handle.save(tmp_path)

    assert first == tmp_path / "report-1.csv"
    assert second == tmp_path / "report-2.csv"
    assert (tmp_path / "report.csv").read_bytes() == b"old"
    assert first.read_bytes() == b"new"
