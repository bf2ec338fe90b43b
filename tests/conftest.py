"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest


EXCEPTION_PAGE = """\
=begin pod

=TITLE class Exception

=SUBTITLE Anomalous event capable of interrupting normal control-flow

    class Exception {}

All exceptions that are thrown by the runtime derive from C<Exception>.
See L<the exceptions guide|/language/exceptions> for an overview.

=head1 Methods

=head2 method message

Defined as:

=begin code :lang<raku>
method message(Exception:D: --> Str:D)
=end code

Returns the error message.

=head2 method throw

Throws the exception. See also L<X::AdHoc>.

=end pod
"""

ADHOC_PAGE = """\
=begin pod

=TITLE class X::AdHoc

=SUBTITLE Error with a custom message

C<X::AdHoc> is the type of exception thrown by C<die "text">.
It inherits from L<Exception>.

=head1 Methods

=head2 method payload

Returns the original object passed to C<die>.
Its L<.message|Exception.message> is the stringified payload.

=end pod
"""

EXCEPTIONS_GUIDE = """\
=begin pod

=TITLE Exceptions

=SUBTITLE Using exceptions

=head1 Ad hoc exceptions

Ad hoc exceptions work with L<X::AdHoc> and L<Failure>.

=begin code
die "oops";
CATCH { default { say .message } }
=end code

=head1 Typed exceptions

See L<the manual|https://example.org/manual>.

=end pod
"""


def write_corpus(root: Path, files: dict[str, str]) -> Path:
    """Write ``{relative path: text}`` below ``root``."""
    for relative, text in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    return root


@pytest.fixture
def corpus_dir(tmp_path):
    """A small corpus with two type pages and one language page."""
    return write_corpus(
        tmp_path / "doc",
        {
            "Type/Exception.pod6": EXCEPTION_PAGE,
            "Type/X/AdHoc.pod6": ADHOC_PAGE,
            "Language/exceptions.pod6": EXCEPTIONS_GUIDE,
        },
    )


@pytest.fixture
def output_dir(tmp_path):
    """Create a temporary output directory."""
    out_dir = tmp_path / "output"
    out_dir.mkdir()
    return out_dir
