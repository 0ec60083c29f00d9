from kswift.kswift import demangle, demangle_type, remangle, demangle_to_string, is_mangled_name, \
    build_value_witness_table, load_value_witnesses

from kswift.node import Node, Kind
from kswift.printer import DemangleOptions, print_node
from kswift.memory import ValueMemory
from kswift.structs import WitnessSlot, WITNESS_SLOTS, RequiredValueWitnesses, AllValueWitnesses, ValueBuffer
from kswift.witness import TypeLayout, ValueWitnessTable, ValueWitnessFlags
from kswift.exceptions import KSwiftException, MalformedMangling, UnknownSubstitutionIndex, ShapeMismatch, \
    UnmangleableNode, WitnessContractViolation, MemoryAccessError
from kswift.util import KSWIFT_VERSION, opts
from lib0cyn.log import log, LogLevel
