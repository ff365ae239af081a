"""
Tests for the command dispatch behind the kernel, the kernel hooks
themselves and the kernel spec installer.
"""
import json
import os
import sys
from types import SimpleNamespace

from calysto_cesil import install
from calysto_cesil.cesil import CESIL
from calysto_cesil.kernel import CalystoCESIL

from .conftest import FakeKernel

PROGRAM = "        LOAD 5\n        OUT\n        HALT\n"


class TestCommands:

    def test_load_and_run(self, machine, kernel, tmp_path, monkeypatch):
        (tmp_path / "five.cesil").write_text(PROGRAM)
        monkeypatch.chdir(tmp_path)
        assert machine.execute("l five")
        assert machine.filename == "five.cesil"
        assert machine.execute("run")
        assert kernel.text == "5Program halted.\n"

    def test_load_exact_filename(self, machine, tmp_path, monkeypatch):
        (tmp_path / "five.txt").write_text(PROGRAM)
        monkeypatch.chdir(tmp_path)
        assert machine.execute("load five.txt")
        assert machine.filename == "five.txt"

    def test_load_failure_reports_diagnostics(self, machine, kernel, tmp_path, monkeypatch):
        (tmp_path / "bad.cesil").write_text("        OUT\n")
        monkeypatch.chdir(tmp_path)
        assert not machine.execute("load bad")
        assert kernel.errors

    def test_missing_filename(self, machine, kernel):
        assert not machine.execute("load")
        assert kernel.text == "Missing filename.\n"

    def test_no_such_file(self, machine, kernel, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert not machine.execute("l nothing")
        assert kernel.text == "No such file.\n"

    def test_run_refused_after_failed_assembly(self, machine, kernel):
        machine.assemble_text("        OUT\n")
        del kernel.output[:]
        assert not machine.execute("r")
        assert kernel.text == "Cannot run program due to syntax errors.\n"

    def test_program_text_is_assembled(self, machine, kernel):
        assert machine.execute(PROGRAM)
        assert kernel.text.startswith("Assembled!")
        assert len(machine.program.instructions) == 3

    def test_memory(self, machine, kernel):
        assert machine.execute("m")
        assert kernel.text == "Accumulator:-\n0\nNamed storage:-\nLiteral texts:-\n"

    def test_dis_and_debug(self, machine, kernel):
        machine.execute(PROGRAM)
        del kernel.output[:]
        assert machine.execute("dis")
        assert len(kernel.text.splitlines()) == 3
        assert machine.execute("debug")
        assert machine.debug
        assert kernel.output[-1] == "Debug is now on\n"

    def test_unknown_command_keeps_program(self, machine, kernel):
        machine.execute(PROGRAM)
        del kernel.output[:]
        assert not machine.execute("rn")
        assert kernel.text == "I do not understand.\n"
        assert kernel.errors == []
        assert len(machine.program.instructions) == 3
        assert not machine.program.failed

    def test_blank_input_does_nothing(self, machine, kernel):
        assert machine.execute("   ")
        assert kernel.output == []


def make_kernel(inputs=()):
    fake = FakeKernel(inputs)
    return SimpleNamespace(cesil=CESIL(fake), Error=fake.errors.append), fake


class TestKernel:

    def test_is_complete(self):
        shell, fake = make_kernel()
        assert CalystoCESIL.do_is_complete(shell, "run")["status"] == "complete"
        assert CalystoCESIL.do_is_complete(shell, "l prog")["status"] == "complete"
        assert CalystoCESIL.do_is_complete(shell, "        LOAD 1")["status"] == "incomplete"
        assert CalystoCESIL.do_is_complete(shell, PROGRAM + "\n")["status"] == "complete"
        assert CalystoCESIL.do_is_complete(shell, "")["status"] == "incomplete"

    def test_completions(self):
        shell, fake = make_kernel()
        shell.cesil.assemble_text("JIFFY   HALT\n")
        matches = CalystoCESIL.get_completions(shell, {"help_obj": "JI"})
        assert matches == ["JINEG", "JIZERO", "JIFFY"]
        assert CalystoCESIL.get_completions(shell, {"help_obj": "me"}) == ["memory"]

    def test_help(self):
        shell, fake = make_kernel()
        assert CalystoCESIL.get_kernel_help_on(shell, {"code": "r"}).startswith("run")
        assert CalystoCESIL.get_kernel_help_on(shell, {"code": "zzz"}, none_on_fail=True) is None

    def test_execute_reports_run_time_failure(self):
        shell, fake = make_kernel()
        shell.cesil.assemble_text("        IN\n        HALT\n")
        CalystoCESIL.do_execute_direct(shell, "run\n")
        assert fake.errors == ["Input exhausted while reading an integer"]

    def test_execute_file_assembles_and_runs(self, tmp_path):
        shell, fake = make_kernel()
        source = tmp_path / "five.cesil"
        source.write_text(PROGRAM)
        CalystoCESIL.do_execute_file(shell, str(source))
        assert fake.text == "5Program halted.\n"
        assert shell.cesil.accumulator == 5

    def test_execute_file_does_not_run_failed_program(self, tmp_path):
        shell, fake = make_kernel()
        source = tmp_path / "bad.cesil"
        source.write_text("        OUT\n")
        CalystoCESIL.do_execute_file(shell, str(source))
        assert fake.output == []
        assert fake.errors == ["The program must end with a JUMP or a HALT instruction.",
                               "The program must contain at least one HALT instruction."]


class TestInstall:

    def test_kernel_spec(self, monkeypatch):
        installed = []

        class FakeManager(object):
            def install_kernel_spec(self, source_dir, kernel_name, user=False, prefix=None):
                with open(os.path.join(source_dir, "kernel.json")) as f:
                    installed.append((kernel_name, user, prefix, json.load(f)))

        monkeypatch.setattr(install, "KernelSpecManager", FakeManager)
        install.main([])
        name, user, prefix, spec = installed[0]
        assert (name, user, prefix) == ("calysto_cesil", True, None)
        assert spec["argv"][1:3] == ["-m", "calysto_cesil"]
        assert spec["display_name"] == "Calysto CESIL"

    def test_sys_prefix_install(self, monkeypatch):
        installed = []

        class FakeManager(object):
            def install_kernel_spec(self, source_dir, kernel_name, user=False, prefix=None):
                installed.append((kernel_name, user, prefix))

        monkeypatch.setattr(install, "KernelSpecManager", FakeManager)
        install.main(["--sys-prefix"])
        assert installed == [("calysto_cesil", False, sys.prefix)]
