"""
CESIL (Computer Education in Schools Instruction Language) assembler
and virtual machine.

Source lines have the form:

    [LABEL] MNEMONIC [OPERAND]

A label is present only when the line starts in column one. Operands
are integers, named stores, labels, or a double-quoted message for
PRINT. Lines whose first non-blank character is '*' are comments.
"""

import os
import re
import sys
from collections import namedtuple

IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*\Z")
INTEGER = re.compile(r"[+-]?[0-9]+\Z")

INT32_MIN = -(1 << 31)
INT32_MAX = (1 << 31) - 1

def is_identifier(word):
    return IDENTIFIER.match(word) is not None

def is_integer(word):
    return INTEGER.match(word) is not None

def int32(v):
    """ Wrap v to a signed 32-bit value """
    v &= 0xFFFFFFFF
    if v & (1 << 31): # negative
        return v - (1 << 32)
    return v

def quotient(dividend, divisor):
    """
    Integer division truncating toward zero, as the accumulator
    divides.
    """
    q = abs(dividend) // abs(divisor)
    if (dividend < 0) != (divisor < 0):
        return -q
    return q

def split_line(line):
    """
    Split a source line into (label, instruction, rest). A line that
    starts with whitespace has no label.
    """
    if line[:1].isspace():
        words = line.split(None, 1)
        label = ""
    else:
        words = line.split(None, 2)
        label = words.pop(0) if words else ""
    instruction = words[0] if words else ""
    rest = words[1] if len(words) > 1 else ""
    return label, instruction, rest

def read_operand(text):
    """
    Read one operand from text. A double-quoted operand may contain
    whitespace; \\" and \\\\ escape a quote and a backslash.
    """
    text = text.lstrip()
    if not text.startswith('"'):
        words = text.split()
        return words[0] if words else ""
    chars = []
    escaped = False
    for c in text[1:]:
        if escaped:
            chars.append(c)
            escaped = False
        elif c == "\\":
            escaped = True
        elif c == '"':
            break
        else:
            chars.append(c)
    return "".join(chars)

def quote(text):
    return '"%s"' % text.replace("\\", "\\\\").replace('"', '\\"')

# code is one of the opcode names below; the operand is None, an int32
# literal (*_DIRECT), a storage slot (*_INDIRECT, STORE), a literal
# text index (PRINT) or an instruction index (JUMP, JINEG, JIZERO).
Instruction = namedtuple("Instruction", ["code", "operand"])

class Label(object):
    def __init__(self, name, index=None, origin_line=None):
        self.name = name
        self.index = index
        self.origin_line = origin_line
        self.usages = []

    def resolved(self):
        return self.index is not None

class LabelTable(dict):
    """
    Label name -> Label. Jumps may name a label before it is defined;
    link() fills in every recorded usage once all lines are read.
    """
    def define(self, name, index, line):
        """
        Define name at instruction index. Returns the earlier Label if
        name was already defined (which is left untouched), else None.
        """
        label = self.get(name)
        if label is None:
            self[name] = Label(name, index, line)
        elif label.resolved():
            return label
        else:
            label.index = index
            label.origin_line = line
        return None

    def reference(self, name, usage):
        if name not in self:
            self[name] = Label(name)
        self[name].usages.append(usage)

    def link(self, instructions):
        """
        Patch the operand of every usage with its label's index. Returns
        the names that were never defined, sorted.
        """
        unresolved = []
        for name in sorted(self):
            label = self[name]
            if not label.resolved():
                unresolved.append(name)
                continue
            for usage in label.usages:
                instructions[usage] = instructions[usage]._replace(operand=label.index)
        return unresolved

    def lookup(self, index, default=None):
        for label in self.values():
            if label.index == index:
                return label.name
        return default

class Program(object):
    """
    Everything one load produces: instructions, named storage, literal
    texts and labels. A new load builds a new Program.
    """
    def __init__(self):
        self.instructions = []
        self.storage = []        # [name, value] slots in creation order
        self.storage_index = {}
        self.texts = []
        self.labels = LabelTable()
        self.source = {}         # instruction index -> line number
        self.failed = False

    def storage_slot(self, name):
        if name not in self.storage_index:
            self.storage_index[name] = len(self.storage)
            self.storage.append([name, 0])
        return self.storage_index[name]

    def add_text(self, text):
        self.texts.append(text)
        return len(self.texts) - 1

    def reserve(self, line_count):
        self.instructions.append(None)
        index = len(self.instructions) - 1
        self.source[index] = line_count
        return index

    def emitted(self):
        return [instruction for instruction in self.instructions
                if instruction is not None]

class CESIL(object):
    """
    The CESIL machine. This object can assemble, disassemble, and
    execute CESIL programs.
    """
    mnemonics = ("IN", "OUT", "PRINT", "LINE", "LOAD", "STORE", "ADD",
                 "SUBTRACT", "MULTIPLY", "DIVIDE", "JUMP", "JINEG",
                 "JIZERO", "HALT")
    no_operand = ("IN", "OUT", "LINE", "HALT")
    jumps = ("JUMP", "JINEG", "JIZERO")
    # mnemonic: (direct form, indirect form)
    arithmetic = {
        "LOAD": ("LOAD_DIRECT", "LOAD_INDIRECT"),
        "ADD": ("ADD_DIRECT", "ADD_INDIRECT"),
        "SUBTRACT": ("SUBTRACT_DIRECT", "SUBTRACT_INDIRECT"),
        "MULTIPLY": ("MULTIPLY_DIRECT", "MULTIPLY_INDIRECT"),
        "DIVIDE": ("DIVIDE_DIRECT", "DIVIDE_INDIRECT"),
    }
    commands = ("load", "run", "memory", "dis", "debug")
    aliases = {"l": "load", "r": "run", "m": "memory"}
    extension = ".cesil"

    def __init__(self, kernel=None):
        self.kernel = kernel
        # Functions for interpreting instructions:
        self.apply = {
            "IN": self.IN,
            "OUT": self.OUT,
            "PRINT": self.PRINT,
            "LINE": self.LINE,
            "LOAD_DIRECT": self.LOAD_DIRECT,
            "LOAD_INDIRECT": self.LOAD_INDIRECT,
            "STORE": self.STORE,
            "ADD_DIRECT": self.ADD_DIRECT,
            "ADD_INDIRECT": self.ADD_INDIRECT,
            "SUBTRACT_DIRECT": self.SUBTRACT_DIRECT,
            "SUBTRACT_INDIRECT": self.SUBTRACT_INDIRECT,
            "MULTIPLY_DIRECT": self.MULTIPLY_DIRECT,
            "MULTIPLY_INDIRECT": self.MULTIPLY_INDIRECT,
            "DIVIDE_DIRECT": self.DIVIDE_DIRECT,
            "DIVIDE_INDIRECT": self.DIVIDE_INDIRECT,
            "JUMP": self.JUMP,
            "JINEG": self.JINEG,
            "JIZERO": self.JIZERO,
            "HALT": self.HALT,
        }
        self.initialize()

    def initialize(self):
        self.filename = ""
        self.debug = False
        self.program = Program()
        self.accumulator = 0
        self.pc = 0
        self.cont = False
        self.instruction_count = 0
        self.input_buffer = []

    #### Output and input go through the kernel when there is one:
    def Print(self, *args, end="\n"):
        if self.kernel:
            self.kernel.Print(*args, end=end)
        else:
            print(*args, end=end)

    def Error(self, string):
        if self.kernel:
            self.kernel.Error(string)
        else:
            sys.stderr.write(string + "\n")

    def raw_input(self, prompt):
        if self.kernel:
            return self.kernel.raw_input(prompt)
        return input(prompt)

    #### Assembler

    def load(self, filename):
        self.filename = filename
        with open(filename) as fp:
            return fp.read()

    def assemble(self, source_path):
        """
        Assemble the file at source_path, replacing any loaded program.
        Returns True if assembly failed.
        """
        return self.assemble_text(self.load(source_path))

    def assemble_text(self, text):
        program = Program()
        for line_count, line in enumerate(text.splitlines(), 1):
            self.process_instruction(program, line, line_count)
        # second pass:
        for name in program.labels.link(program.instructions):
            self.report(program, "Could not resolve label %s." % name)
        self.check_structure(program)
        self.program = program
        return program.failed

    def report(self, program, message):
        program.failed = True
        self.Error(message)

    def process_instruction(self, program, line, line_count):
        if not line.strip():
            return
        label, instruction, rest = split_line(line)
        if not instruction:
            return
        # '*' starts a comment unless a mnemonic follows, as in "*X LOAD 1"
        if line.lstrip().startswith("*") and instruction not in self.mnemonics:
            return
        # The slot is taken before the mnemonic is checked, so a bad
        # line still occupies its instruction index.
        index = program.reserve(line_count)
        operand = read_operand(rest)

        if label:
            if not is_identifier(label):
                self.report(program, "The label '%s' on line %s is not of the correct format." %
                            (label, line_count))
                return
            first = program.labels.define(label, index, line_count)
            if first is not None:
                self.report(program, "Duplicate Label %s found at line %s first encountered at line %s." %
                            (label, line_count, first.origin_line))

        if instruction not in self.mnemonics:
            self.report(program, "Instruction '%s' at line %s not recognised." %
                        (instruction, line_count))
        elif instruction in self.no_operand:
            program.instructions[index] = Instruction(instruction, None)
        elif instruction == "PRINT":
            program.instructions[index] = Instruction("PRINT", program.add_text(operand))
        elif instruction == "STORE":
            if is_identifier(operand):
                program.instructions[index] = Instruction("STORE", program.storage_slot(operand))
            else:
                self.report(program, "The named store '%s' at line %s is not of the correct format." %
                            (operand, line_count))
        elif instruction in self.jumps:
            if is_identifier(operand):
                program.labels.reference(operand, index)
                program.instructions[index] = Instruction(instruction, None)
            else:
                self.report(program, "The label '%s' at line %s is not of the correct format." %
                            (operand, line_count))
        else:
            direct, indirect = self.arithmetic[instruction]
            if is_identifier(operand):
                program.instructions[index] = Instruction(indirect, program.storage_slot(operand))
            elif is_integer(operand) and INT32_MIN <= int(operand) <= INT32_MAX:
                program.instructions[index] = Instruction(direct, int(operand))
            else:
                self.report(program, "The named store or integer '%s' at line %s is not of the correct format." %
                            (operand, line_count))

    def check_structure(self, program):
        emitted = program.emitted()
        if not emitted:
            self.report(program, "The program contains no instructions.")
        elif emitted[-1].code not in ("JUMP", "HALT"):
            self.report(program, "The program must end with a JUMP or a HALT instruction.")
        if not any(instruction.code == "HALT" for instruction in emitted):
            self.report(program, "The program must contain at least one HALT instruction.")

    #### Virtual machine

    def run(self):
        if not self.program.instructions:
            self.Print("Nothing to run.")
            return
        self.accumulator = 0
        self.pc = 0
        self.instruction_count = 0
        self.cont = True
        while self.cont:
            self.step()

    def step(self):
        pc = self.pc
        instruction = self.program.instructions[pc]
        if instruction is None:
            self.undefined(pc)
        self.pc += 1
        self.instruction_count += 1
        self.apply[instruction.code](instruction.operand)
        if self.debug:
            self.Print("(%s) %4d: %-30s [line %s] ACC = %s" % (
                self.instruction_count, pc,
                self.format_instruction(instruction),
                self.program.source.get(pc, "unknown"),
                self.accumulator))

    def undefined(self, pc):
        raise ValueError("Undefined instruction at %s (line %s)" %
                         (pc, self.program.source.get(pc, "unknown")))

    def get_storage(self, slot):
        return self.program.storage[slot][1]

    def read_integer(self):
        """
        Take the next whitespace-separated token of input as an integer,
        reading another line only when the buffered one is used up.
        """
        while True:
            while not self.input_buffer:
                try:
                    line = self.raw_input("Please enter an integer ")
                except EOFError:
                    raise IOError("Input exhausted while reading an integer")
                self.input_buffer = line.split()
            word = self.input_buffer.pop(0)
            if is_integer(word) and INT32_MIN <= int(word) <= INT32_MAX:
                return int(word)
            self.Error("'%s' is not a valid integer." % word)
            self.input_buffer = []

    def IN(self, operand):
        self.accumulator = self.read_integer()

    def OUT(self, operand):
        self.Print(self.accumulator, end="")

    def PRINT(self, index):
        self.Print(self.program.texts[index], end="")

    def LINE(self, operand):
        self.Print()

    def LOAD_DIRECT(self, value):
        self.accumulator = value

    def LOAD_INDIRECT(self, slot):
        self.accumulator = self.get_storage(slot)

    def STORE(self, slot):
        self.program.storage[slot][1] = self.accumulator

    def ADD_DIRECT(self, value):
        self.accumulator = int32(self.accumulator + value)

    def ADD_INDIRECT(self, slot):
        self.ADD_DIRECT(self.get_storage(slot))

    def SUBTRACT_DIRECT(self, value):
        self.accumulator = int32(self.accumulator - value)

    def SUBTRACT_INDIRECT(self, slot):
        self.SUBTRACT_DIRECT(self.get_storage(slot))

    def MULTIPLY_DIRECT(self, value):
        self.accumulator = int32(self.accumulator * value)

    def MULTIPLY_INDIRECT(self, slot):
        self.MULTIPLY_DIRECT(self.get_storage(slot))

    def DIVIDE_DIRECT(self, value):
        if value == 0:
            # not fatal: the accumulator keeps its value
            self.Error("Run-time error - divide by zero at line %s" %
                       self.program.source.get(self.pc - 1, "unknown"))
        else:
            self.accumulator = int32(quotient(self.accumulator, value))

    def DIVIDE_INDIRECT(self, slot):
        self.DIVIDE_DIRECT(self.get_storage(slot))

    def JUMP(self, index):
        self.pc = index

    def JINEG(self, index):
        if self.accumulator < 0:
            self.pc = index

    def JIZERO(self, index):
        if self.accumulator == 0:
            self.pc = index

    def HALT(self, operand):
        self.Print("Program halted.")
        # drop the rest of the last input line
        self.input_buffer = []
        self.cont = False

    #### Reports

    def dump_state(self):
        self.Print("Accumulator:-")
        self.Print(self.accumulator)
        self.Print("Named storage:-")
        for name, value in self.program.storage:
            self.Print("%s = %s" % (name, value))
        self.Print("Literal texts:-")
        for text in self.program.texts:
            self.Print(text)

    def format_instruction(self, instruction):
        if instruction is None:
            return ";; empty"
        code, operand = instruction
        mnemonic = code.split("_")[0]
        if operand is None:
            return mnemonic
        if code == "PRINT":
            return "%s %s" % (mnemonic, quote(self.program.texts[operand]))
        elif code in self.jumps:
            return "%s %s" % (mnemonic, self.program.labels.lookup(operand, operand))
        elif code == "STORE" or code.endswith("_INDIRECT"):
            return "%s %s" % (mnemonic, self.program.storage[operand][0])
        return "%s %s" % (mnemonic, operand)

    def disassemble(self):
        if not self.program.instructions:
            self.Print("Nothing to disassemble.")
            return
        for index, instruction in enumerate(self.program.instructions):
            label = self.program.labels.lookup(index, "")
            self.Print("%-10s %4d  %s" % (label, index, self.format_instruction(instruction)))

    #### Commands from the shell

    def find_source(self, name):
        for filename in (name, name + self.extension):
            if os.path.isfile(filename):
                return filename
        return None

    def execute(self, text):
        """
        Run a one-line shell command, or assemble multi-line text as a
        program. Returns True on success.
        """
        words = text.split()
        if not words:
            return True
        if len(text.strip().splitlines()) > 1:
            failed = self.assemble_text(text)
            if not failed:
                self.Print("Assembled! Use run to execute; use memory or dis to examine.")
            return not failed
        command = self.aliases.get(words[0], words[0])
        if command not in self.commands:
            self.Print("I do not understand.")
            return False
        if command == "load":
            if len(words) < 2:
                self.Print("Missing filename.")
                return False
            filename = self.find_source(" ".join(words[1:]))
            if filename is None:
                self.Print("No such file.")
                return False
            return not self.assemble(filename)
        elif command == "run":
            if self.program.failed:
                self.Print("Cannot run program due to syntax errors.")
                return False
            self.run()
        elif command == "memory":
            self.dump_state()
        elif command == "dis":
            self.disassemble()
        elif command == "debug":
            self.debug = not self.debug
            self.Print("Debug is now %s" % ["off", "on"][int(self.debug)])
        return True
