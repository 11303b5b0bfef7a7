"""Shared test fixtures: sample svn output and a fake svn executable."""

from __future__ import annotations

import stat
import sys
import textwrap
from pathlib import Path

import pytest


@pytest.fixture
def sample_svn_diff() -> str:
    """Two files as printed by ``svn diff``."""
    return textwrap.dedent("""\
        Index: src/app.py
        ===================================================================
        --- src/app.py\t(revision 41)
        +++ src/app.py\t(working copy)
        @@ -1,4 +1,5 @@
         import os
        -import sys
        +import sys, json
        +import logging

         def main():
        Index: README.txt
        ===================================================================
        --- README.txt\t(revision 41)
        +++ README.txt\t(working copy)
        @@ -10,2 +10,2 @@
        -old text
        +new text
         tail
    """)


@pytest.fixture
def sample_svn_diff_binary() -> str:
    return textwrap.dedent("""\
        Index: logo.png
        ===================================================================
        Cannot display: file marked as a binary type.
        svn:mime-type = application/octet-stream
        Index: notes.txt
        ===================================================================
        --- notes.txt\t(nonexistent)
        +++ notes.txt\t(working copy)
        @@ -0,0 +1 @@
        +hello
    """)


@pytest.fixture
def sample_svn_diff_properties() -> str:
    return textwrap.dedent("""\
        Index: build.sh
        ===================================================================
        --- build.sh\t(revision 7)
        +++ build.sh\t(working copy)
        @@ -1 +1 @@
        -echo old
        +echo new

        Property changes on: build.sh
        ___________________________________________________________________
        Added: svn:executable
        ## -0,0 +1 ##
        +*
        \\ No newline at end of property
    """)


@pytest.fixture
def sample_status_text() -> str:
    return textwrap.dedent("""\
        M       src/app.py
        A  +    src/copied.py
        ?       scratch.txt
        !       gone.txt
        C       conflicted.c
              C tree/victim.txt
              >   local file edit, incoming file delete or move upon update
             K  locked.bin
        Z       weird.txt

        --- Changelist 'feature':
        M       feature/a.py
    """)


@pytest.fixture
def sample_status_xml() -> str:
    return textwrap.dedent("""\
        <?xml version="1.0" encoding="UTF-8"?>
        <status>
        <target path=".">
        <entry path="src/app.py">
        <wc-status item="modified" props="none" revision="41">
        <commit revision="40">
        <author>alice</author>
        <date>2024-01-10T12:34:56.123456Z</date>
        </commit>
        </wc-status>
        <repos-status item="modified" props="none"/>
        </entry>
        <entry path="new.txt">
        <wc-status item="added" props="none" revision="-1" copied="true"/>
        </entry>
        <entry path="tree.txt">
        <wc-status item="normal" props="none" revision="41" tree-conflicted="true">
        <lock>
        <token>opaquelocktoken:1234</token>
        <owner>bob</owner>
        <comment>editing</comment>
        <created>2024-01-09T08:00:00.000000Z</created>
        </lock>
        </wc-status>
        </entry>
        <entry path="odd.txt">
        <wc-status item="shelved" props="none" revision="41"/>
        </entry>
        <against revision="45"/>
        </target>
        <changelist name="feature">
        <entry path="feature/a.py">
        <wc-status item="modified" props="modified" revision="41"/>
        </entry>
        </changelist>
        </status>
    """)


@pytest.fixture
def sample_log_text() -> str:
    return textwrap.dedent("""\
        ------------------------------------------------------------------------
        r12 | alice | 2024-01-10 12:34:56 +0000 (Wed, 10 Jan 2024) | 1 line
        Changed paths:
           M /trunk/src/app.py
           A /branches/feature (from /trunk:11)

        Fix the parser
        ------------------------------------------------------------------------
        r11 | (no author) | 2024-01-09 08:00:00 +0100 (Tue, 09 Jan 2024) | 1 line

        Initial import
        ------------------------------------------------------------------------
    """)


@pytest.fixture
def sample_log_xml() -> str:
    return textwrap.dedent("""\
        <?xml version="1.0" encoding="UTF-8"?>
        <log>
        <logentry revision="12">
        <author>alice</author>
        <date>2024-01-10T12:34:56.000000Z</date>
        <paths>
        <path action="M" kind="file" prop-mods="false" text-mods="true">/trunk/src/app.py</path>
        <path action="A" kind="dir" copyfrom-path="/trunk" copyfrom-rev="11">/branches/feature</path>
        <path action="X" kind="">/trunk/odd</path>
        </paths>
        <msg>Fix the parser</msg>
        </logentry>
        <logentry revision="11">
        <date>2024-01-09T07:00:00.000000Z</date>
        <msg>Initial import</msg>
        </logentry>
        </log>
    """)


@pytest.fixture
def sample_info_text() -> str:
    return textwrap.dedent("""\
        Path: src/app.py
        Name: app.py
        Working Copy Root Path: /home/alice/wc
        URL: https://svn.example.com/repo/trunk/src/app.py
        Relative URL: ^/trunk/src/app.py
        Repository Root: https://svn.example.com/repo
        Repository UUID: 0fd6c0a6-8a1f-4c5b-9d1e-000000000000
        Revision: 41
        Node Kind: file
        Schedule: normal
        Last Changed Author: alice
        Last Changed Rev: 40
        Last Changed Date: 2024-01-10 12:34:56 +0000 (Wed, 10 Jan 2024)
        Lock Token: opaquelocktoken:1234
        Lock Owner: bob
        Lock Created: 2024-01-09 08:00:00 +0000 (Tue, 09 Jan 2024)
        Lock Comment (2 lines):
        editing
        do not touch
        Conflict Previous Base File: app.py.r38
        Conflict Previous Working File: app.py.mine
        Conflict Current Base File: app.py.r41

        Path: docs
        Working Copy Root Path: /home/alice/wc
        URL: https://svn.example.com/repo/trunk/docs
        Revision: 41
        Node Kind: directory
        Depth: empty
        Tree conflict: local dir edit, incoming dir delete or move upon update
          Source  left: (dir) ^/trunk/docs@40
          Source right: (none) ^/trunk/docs@41

    """)


@pytest.fixture
def sample_info_xml() -> str:
    return textwrap.dedent("""\
        <?xml version="1.0" encoding="UTF-8"?>
        <info>
        <entry kind="file" path="src/app.py" revision="41">
        <url>https://svn.example.com/repo/trunk/src/app.py</url>
        <relative-url>^/trunk/src/app.py</relative-url>
        <repository>
        <root>https://svn.example.com/repo</root>
        <uuid>0fd6c0a6-8a1f-4c5b-9d1e-000000000000</uuid>
        </repository>
        <wc-info>
        <wcroot-abspath>/home/alice/wc</wcroot-abspath>
        <schedule>normal</schedule>
        <depth>infinity</depth>
        <conflict type="text" operation="update">
        <prev-base-file>app.py.r38</prev-base-file>
        <prev-wc-file>app.py.mine</prev-wc-file>
        <cur-base-file>app.py.r41</cur-base-file>
        </conflict>
        </wc-info>
        <commit revision="40">
        <author>alice</author>
        <date>2024-01-10T12:34:56.000000Z</date>
        </commit>
        </entry>
        </info>
    """)


@pytest.fixture
def sample_list_verbose() -> str:
    return textwrap.dedent("""\
             40 alice                 Jan 10  2023 docs/
             41 bob              1234 Jan 10 12:34 README.txt
             12 carol          O   77 May  2  2020 locked.bin
    """)


@pytest.fixture
def sample_blame_text() -> str:
    return (
        "    12      alice import os\n"
        "    40        bob import sys, json\n"
        "     -          - local edit\n"
        "    12      alice \n"
    )


@pytest.fixture
def sample_proplist_text() -> str:
    return textwrap.dedent("""\
        Properties on 'build.sh':
          svn:executable
            *
          svn:ignore
            *.pyc
            build
    """)


class FakeSvn:
    """A scripted stand-in for the svn binary.

    Responses are files under ``responses/``: ``<verb>.txt`` for text
    output, ``<verb>.xml`` for ``--xml`` runs, ``<verb>.code`` plus
    ``<verb>.err`` for failures.
    """

    SCRIPT = textwrap.dedent("""\
        #!{python}
        import os, sys
        here = os.path.dirname(os.path.abspath(__file__))
        args = [a for a in sys.argv[1:] if a != "--non-interactive"]
        with open(os.path.join(here, "calls.log"), "a") as log:
            log.write(" ".join(args) + "\\n")
        if args and args[0] == "--version":
            print("1.14.2")
            sys.exit(0)
        verb = args[0] if args else ""
        base = os.path.join(here, "responses", verb)
        if os.path.exists(base + ".code"):
            sys.stderr.write(open(base + ".err").read())
            sys.exit(int(open(base + ".code").read()))
        name = base + (".xml" if "--xml" in args else ".txt")
        if os.path.exists(name):
            sys.stdout.write(open(name).read())
            sys.exit(0)
        sys.stderr.write("svn: E205000: no canned response\\n")
        sys.exit(1)
    """)

    def __init__(self, root: Path) -> None:
        self.root = root
        self.responses = root / "responses"
        self.responses.mkdir(parents=True)
        self.path = root / "svn"
        self.path.write_text(self.SCRIPT.format(python=sys.executable))
        self.path.chmod(self.path.stat().st_mode | stat.S_IEXEC)

    def respond(self, verb: str, output: str, xml: bool = False) -> None:
        (self.responses / f"{verb}.{'xml' if xml else 'txt'}").write_text(output)

    def fail(self, verb: str, stderr: str, code: int = 1) -> None:
        (self.responses / f"{verb}.err").write_text(stderr)
        (self.responses / f"{verb}.code").write_text(str(code))

    @property
    def calls(self) -> list:
        log = self.root / "calls.log"
        return log.read_text().splitlines() if log.exists() else []


@pytest.fixture
def fake_svn(tmp_path: Path, monkeypatch) -> FakeSvn:
    """Fake svn on SVNPILOT_SVN_PATH."""
    if sys.platform == "win32":
        pytest.skip("fake svn script needs a POSIX shebang")
    fake = FakeSvn(tmp_path / "fakesvn")
    monkeypatch.setenv("SVNPILOT_SVN_PATH", str(fake.path))
    return fake
