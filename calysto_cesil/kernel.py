from metakernel import MetaKernel

from .cesil import CESIL
from ._version import __version__

class CalystoCESIL(MetaKernel):
    implementation = 'CESIL'
    implementation_version = __version__
    language = 'Calysto CESIL'
    language_version = '0.1'
    banner = "Calysto CESIL - Computer Education in Schools Instruction Language"
    language_info = {
        'name': 'cesil',
        'mimetype': 'text/plain',
        'file_extension': '.cesil',
    }

    def __init__(self, *args, **kwargs):
        super(CalystoCESIL, self).__init__(*args, **kwargs)
        self.cesil = CESIL(self)

    def get_usage(self):
        return """This is the Calysto CESIL Jupyter kernel.

Enter a CESIL program to assemble it, or one of these commands:

 l(oad) FILENAME                    - assemble FILENAME (or FILENAME.cesil)
 r(un)                              - execute the assembled program
 m(emory)                           - show the accumulator, named storage
                                      and literal texts
 dis                                - list the assembled program
 debug                              - toggle tracing of each instruction

Program lines have the form:

LABEL   MNEMONIC   OPERAND

with the label starting in column one, or omitted by indenting the line.

To get additional help on these items, use '%help item'.
"""

    def get_completions(self, info):
        token = info["help_obj"]
        matches = []
        for item in (list(self.cesil.mnemonics) +
                     list(self.cesil.program.labels.keys()) +
                     list(self.cesil.commands)):
            if item.startswith(token) and item not in matches:
                matches.append(item)
        return matches

    def get_kernel_help_on(self, info, level=0, none_on_fail=False):
        expr = info["code"].strip()
        expr = self.cesil.aliases.get(expr, expr)
        if expr == "load":
            return """load FILENAME - Assemble a source file

Diagnostics are shown for every error found. A program that fails to
assemble cannot be run until a later load succeeds.
"""
        elif expr == "run":
            return """run - Execute the program from its first instruction
"""
        elif expr == "memory":
            return """memory - Show the accumulator, named storage and literal texts
"""
        elif expr == "dis":
            return """dis - List the assembled program
"""
        elif expr == "debug":
            return """debug - Toggle tracing of each executed instruction
"""
        elif none_on_fail:
            return None
        else:
            return "No available help on '%s'" % expr

    def do_execute_file(self, filename):
        if not self.cesil.assemble(filename):
            self.cesil.run()

    def do_execute_direct(self, code):
        try:
            self.cesil.execute(code.rstrip())
        except Exception as exc:
            self.Error(str(exc))
        except KeyboardInterrupt:
            self.Error("Keyboard Interrupt!")

    def do_is_complete(self, code):
        words = code.split()
        if not words:
            return {'status' : 'incomplete'}
        command = self.cesil.aliases.get(words[0], words[0])
        if command in self.cesil.commands and "\n" not in code.strip():
            return {'status' : 'complete'}
        elif code.rstrip(" \t").endswith("\n"):
            return {'status' : 'complete'}
        else:
            return {'status' : 'incomplete',
                    'indent': '    '}

    def repr(self, data):
        return repr(data)
