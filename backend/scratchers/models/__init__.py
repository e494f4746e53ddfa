from .stores import Store, ShiftReport
from .communications import StoreMessage
from .catalog import ScratcherProduct
from .packs import ScratcherSlot, ScratcherPack, ScratcherPackEvent, ScratcherFile
from .snapshots import ScratcherSnapshot, ScratcherSnapshotItem, ScratcherShiftCalculation

__all__ = [
    'Store', 'ShiftReport',
    'StoreMessage',
    'ScratcherProduct',
    'ScratcherSlot', 'ScratcherPack', 'ScratcherPackEvent', 'ScratcherFile',
    'ScratcherSnapshot', 'ScratcherSnapshotItem', 'ScratcherShiftCalculation',
]
