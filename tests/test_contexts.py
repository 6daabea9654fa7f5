#!/usr/bin/env python3
"""
Tests for remote docker context handling.
"""

import sys
import tempfile
from pathlib import Path

import pytest

# Add repo root and tests dir to path
repo_root = Path(__file__).resolve().parent.parent
for _p in (repo_root, repo_root / "tests"):
    if str(_p) not in sys.path:
        sys.path.insert(0, str(_p))

from docker_fakes import REMOTE_HOST, fake_docker, make_profile
from remote_build.contexts import (
    context_create_args,
    context_tls_mismatch,
    create_context,
    current_context,
    inspect_context,
    use_context,
)
from remote_build.errors import ContextConflictError, ContextError, DockerCommandError, TLSMaterialError


def test_create_args_carry_all_tls_parameters():
    """context create passes host, ca, cert and key in one --docker endpoint."""
    with tempfile.TemporaryDirectory() as tmp:
        ctx = make_profile(Path(tmp)).context
        args = context_create_args(ctx)

    assert args[:3] == ["context", "create", "remote"]
    assert args[3] == "--docker"
    fields = dict(part.split("=", 1) for part in args[4].split(","))
    assert list(fields) == ["host", "ca", "cert", "key"]
    assert fields["host"] == REMOTE_HOST
    assert fields["ca"] == str(ctx.tls.ca)
    assert fields["cert"] == str(ctx.tls.cert)
    assert fields["key"] == str(ctx.tls.key)


def test_create_args_with_description():
    with tempfile.TemporaryDirectory() as tmp:
        profile = make_profile(Path(tmp))
        ctx = profile.context.model_copy(update={"description": "hopper cluster"})
        args = context_create_args(ctx)
    assert args[3:5] == ["--description", "hopper cluster"]
    assert args[5] == "--docker"


def test_create_context_when_absent():
    """A missing context is created."""
    with tempfile.TemporaryDirectory() as tmp:
        ctx = make_profile(Path(tmp)).context
        with fake_docker() as docker:
            outcome = create_context(ctx)

    assert outcome == "created"
    assert docker.contexts["remote"] == REMOTE_HOST
    assert docker.index_of("context", "inspect") < docker.index_of("context", "create")


def test_create_context_reuses_matching_context():
    """An existing context for the same host and the same certificates is left alone."""
    with tempfile.TemporaryDirectory() as tmp:
        ctx = make_profile(Path(tmp)).context
        with fake_docker(contexts={"remote": REMOTE_HOST}, tls={"remote": ctx.tls}) as docker:
            outcome = create_context(ctx)

    assert outcome == "exists"
    assert docker.index_of("context", "create") == -1


def test_create_context_rejects_context_without_tls():
    """A same-host context that was created without certificates is not reused."""
    with tempfile.TemporaryDirectory() as tmp:
        ctx = make_profile(Path(tmp)).context

        with fake_docker(contexts={"remote": REMOTE_HOST}) as docker:
            with pytest.raises(ContextConflictError) as excinfo:
                create_context(ctx)
            assert "ca.pem" in excinfo.value.reason
            assert "--replace-context" in str(excinfo.value)
            assert docker.calls == [["context", "inspect", "remote"]]

        with fake_docker(contexts={"remote": REMOTE_HOST}) as docker:
            outcome = create_context(ctx, replace=True)
            inspected = inspect_context("remote")

    assert outcome == "replaced"
    assert inspected["TLSMaterial"]["docker"] == ["ca.pem", "cert.pem", "key.pem"]
    assert context_tls_mismatch(inspected, ctx.tls) is None


def test_create_context_detects_rotated_certificates():
    """A context holding an older client certificate is a conflict until replaced."""
    with tempfile.TemporaryDirectory() as tmp:
        ctx = make_profile(Path(tmp)).context

        with fake_docker(contexts={"remote": REMOTE_HOST}, tls={"remote": ctx.tls}) as docker:
            ctx.tls.cert.write_text("-----BEGIN ROTATED CERT-----\n", encoding="utf-8")
            with pytest.raises(ContextConflictError) as excinfo:
                create_context(ctx)
            assert excinfo.value.reason == "stored files differ from the profile's: cert.pem"
            assert docker.index_of("context", "create") == -1

            outcome = create_context(ctx, replace=True)
            stored = (docker.tls_dir("remote") / "docker" / "cert.pem").read_text(encoding="utf-8")

    assert outcome == "replaced"
    assert stored == "-----BEGIN ROTATED CERT-----\n"


def test_create_context_conflict_and_replace():
    """A same-named context on another host conflicts unless replace is requested."""
    with tempfile.TemporaryDirectory() as tmp:
        ctx = make_profile(Path(tmp)).context

        with fake_docker(contexts={"remote": "tcp://elsewhere:2376"}) as docker:
            with pytest.raises(ContextConflictError) as excinfo:
                create_context(ctx)
            assert excinfo.value.existing_host == "tcp://elsewhere:2376"
            assert docker.index_of("context", "create") == -1

        with fake_docker(contexts={"remote": "tcp://elsewhere:2376"}) as docker:
            outcome = create_context(ctx, replace=True)

    assert outcome == "replaced"
    assert docker.contexts["remote"] == REMOTE_HOST
    assert docker.index_of("context", "rm") < docker.index_of("context", "create")


def test_create_context_requires_readable_tls_files():
    """Missing certificates stop the run before docker is called at all."""
    with tempfile.TemporaryDirectory() as tmp:
        ctx = make_profile(Path(tmp)).context
        ctx.tls.cert.unlink()

        with fake_docker() as docker:
            with pytest.raises(TLSMaterialError) as excinfo:
                create_context(ctx)

    assert excinfo.value.missing == [ctx.tls.cert]
    assert docker.calls == []


def test_use_context_selects_and_verifies():
    """use_context switches the active context and confirms it."""
    with fake_docker(contexts={"remote": REMOTE_HOST}) as docker:
        use_context("remote")
        assert current_context() == "remote"

    assert docker.active == "remote"
    assert docker.index_of("context", "use") < docker.index_of("context", "show")


def test_use_context_detects_unchanged_active_context():
    """If docker still reports another context, selection is an error."""
    with fake_docker(contexts={"remote": REMOTE_HOST}, stuck_context=True):
        with pytest.raises(ContextError):
            use_context("remote")


def test_use_unknown_context_surfaces_docker_message():
    """docker's own error text comes through unchanged."""
    with fake_docker():
        with pytest.raises(DockerCommandError) as excinfo:
            use_context("missing")
    assert excinfo.value.returncode == 1
    assert 'context "missing" does not exist' in excinfo.value.stderr


def test_inspect_context():
    with fake_docker(contexts={"remote": REMOTE_HOST}):
        assert inspect_context("remote")["Endpoints"]["docker"]["Host"] == REMOTE_HOST
        assert inspect_context("absent") is None

    with fake_docker(fail_on=["context", "inspect"], stderr="permission denied"):
        with pytest.raises(DockerCommandError):
            inspect_context("remote")


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
