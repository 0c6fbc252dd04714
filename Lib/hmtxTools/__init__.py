"""
This scales the advance widths of TrueType and OpenType fonts.

The main function is scaleFont. It takes the raw data of an
sfnt font and a scale factor and returns the raw data of a
new font with every advance width in the hmtx table scaled.
All other tables are copied byte for byte. The SFNTReader,
SFNTWriter and scaleAdvanceWidths are also available for use
outside of this module.

The head table checkSumAdjustment is not recalculated.
"""

import math
import struct
import logging
from collections import OrderedDict
from fontTools.misc import sstruct
from fontTools.misc.roundTools import otRound
from fontTools.misc.textTools import Tag
from fontTools.ttLib import getSearchRange
from fontTools.ttLib.sfnt import calcChecksum, \
    sfntDirectoryFormat, sfntDirectorySize, sfntDirectoryEntryFormat, sfntDirectoryEntrySize

log = logging.getLogger(__name__)

maxScaleFactor = 4.0

# -------------
# Main Function
# -------------

def scaleFont(data, scaleFactor):
    """
    Scale the advance widths in the font *data* by *scaleFactor*
    and return the data for the new font.

    *scaleFactor* must be a finite number greater than 0
    and no more than 4. If the font does not have both a
    hhea and a hmtx table, the font is rewritten unchanged.
    """
    validateScaleFactor(scaleFactor)
    reader = SFNTReader(data)
    tables = OrderedDict(reader.tables)
    scaleAdvanceWidths(tables, scaleFactor)
    writer = SFNTWriter(reader.numTables, sfntVersion=reader.sfntVersion,
        searchRange=reader.searchRange, entrySelector=reader.entrySelector,
        rangeShift=reader.rangeShift)
    for entry in reader.directory:
        writer.setTable(entry.tag, tables[entry.tag])
    return writer.compile()

def validateScaleFactor(scaleFactor):
    """
    >>> validateScaleFactor(0.5)
    >>> validateScaleFactor(4)
    >>> validateScaleFactor(0) # doctest: +IGNORE_EXCEPTION_DETAIL
    Traceback (most recent call last):
        ...
    InvalidScaleFactorError: The scale factor must be greater than 0 and no more than 4 (0).
    """
    if isinstance(scaleFactor, bool):
        valid = False
    else:
        try:
            valid = math.isfinite(scaleFactor) and 0 < scaleFactor <= maxScaleFactor
        except TypeError:
            valid = False
    if not valid:
        raise InvalidScaleFactorError("The scale factor must be greater than 0 and no more than %d (%r)." % (maxScaleFactor, scaleFactor))


# ------
# Reader
# ------

class SFNTReader(object):

    """
    This object unpacks the header, the table directory and
    the table data of an sfnt font. Everything is read when
    the object is created.

    The header values are available as attributes. The entries
    of the table directory are in *directory*, in the order
    they are found in the data. The table data is available
    through the mapping interface.
    """

    def __init__(self, data):
        if len(data) < sfntDirectorySize:
            raise TruncatedInputError("The data (%d bytes) is too short to contain an sfnt header." % len(data))
        sstruct.unpack(sfntDirectoryFormat, data[:sfntDirectorySize], self)
        self.sfntVersion = Tag(self.sfntVersion)
        # the whole directory must fit before any table is located
        directoryEnd = sfntDirectorySize + (sfntDirectoryEntrySize * self.numTables)
        if directoryEnd > len(data):
            raise MalformedHeaderError("The header defines %d tables but the data (%d bytes) is too short to contain their directory (%d bytes)." % (self.numTables, len(data), directoryEnd))
        # unpack the directory
        self.directory = []
        for index in range(self.numTables):
            start = sfntDirectorySize + (index * sfntDirectoryEntrySize)
            entry = SFNTDirectoryEntry()
            entry.fromString(data[start:start + sfntDirectoryEntrySize])
            self.directory.append(entry)
        log.debug("Found %d tables: %s", self.numTables, ", ".join(entry.tag for entry in self.directory))
        # load the table data
        self.tables = OrderedDict()
        for entry in self.directory:
            end = entry.offset + entry.length
            if end > len(data):
                raise TruncatedInputError("The '%s' table (offset %d, length %d) extends past the end of the data (%d bytes)." % (entry.tag, entry.offset, entry.length, len(data)))
            self.tables[entry.tag] = data[entry.offset:end]

    def __contains__(self, tag):
        return tag in self.tables

    def keys(self):
        """
        This returns a list of all tables in the font
        in the order of the table directory.
        """
        return [entry.tag for entry in self.directory]

    def __getitem__(self, tag):
        return self.tables[tag]


# -----------
# Transformer
# -----------

hheaNumberOfHMetricsOffset = 34
longHorMetricSize = 4

def scaleAdvanceWidths(tables, scaleFactor):
    """
    Replace the hmtx data in *tables*, a mapping of tags to
    table data, with data in which every advance width has
    been scaled by *scaleFactor*.

    This returns the number of advance widths that changed.
    If the hhea or the hmtx table is missing, nothing is
    changed and None is returned.
    """
    if "hhea" not in tables or "hmtx" not in tables:
        log.warning("The hhea or hmtx table is missing. The advance widths were not scaled.")
        return None
    data, adjusted = scaleHorizontalMetrics(tables["hhea"], tables["hmtx"], scaleFactor)
    tables["hmtx"] = data
    log.info("%d advance widths were adjusted.", adjusted)
    return adjusted

def scaleHorizontalMetrics(hheaData, hmtxData, scaleFactor):
    """
    Return a tuple of new hmtx data and the number of advance
    widths that changed. The left side bearings are copied
    without being interpreted. The left side bearings that
    follow the long metrics are copied unchanged.

    >>> hhea = b"\\0" * 34 + struct.pack(">H", 2)
    >>> hmtx = struct.pack(">4H", 500, 10, 1000, 20) + b"\\0\\5"
    >>> data, adjusted = scaleHorizontalMetrics(hhea, hmtx, 0.5)
    >>> struct.unpack(">5H", data)
    (250, 10, 500, 20, 5)
    >>> adjusted
    2
    """
    if len(hheaData) < hheaNumberOfHMetricsOffset + 2:
        raise MalformedTableError("The hhea table (%d bytes) is too short to contain numberOfHMetrics." % len(hheaData))
    numberOfHMetrics = struct.unpack(">H", hheaData[hheaNumberOfHMetricsOffset:hheaNumberOfHMetricsOffset + 2])[0]
    log.info("Scaling %d advance widths.", numberOfHMetrics)
    longMetricsLength = numberOfHMetrics * longHorMetricSize
    if longMetricsLength > len(hmtxData):
        raise MalformedTableError("The hmtx table (%d bytes) is too short to contain %d long metrics." % (len(hmtxData), numberOfHMetrics))
    metricsFormat = ">%dH" % (numberOfHMetrics * 2)
    metrics = list(struct.unpack(metricsFormat, hmtxData[:longMetricsLength]))
    adjusted = 0
    for index in range(0, len(metrics), 2):
        advanceWidth = metrics[index]
        newAdvanceWidth = scaleAdvanceWidth(advanceWidth, scaleFactor)
        if newAdvanceWidth != advanceWidth:
            adjusted += 1
        metrics[index] = newAdvanceWidth
    data = struct.pack(metricsFormat, *metrics) + hmtxData[longMetricsLength:]
    return data, adjusted

def scaleAdvanceWidth(advanceWidth, scaleFactor):
    """
    Halves are rounded up. The result is never
    less than 1 and never more than 0xFFFF.

    >>> scaleAdvanceWidth(500, 0.5)
    250
    >>> scaleAdvanceWidth(5, 0.5)
    3
    >>> scaleAdvanceWidth(1, 0.1)
    1
    >>> scaleAdvanceWidth(0, 2)
    1
    >>> scaleAdvanceWidth(40000, 2)
    65535
    """
    value = otRound(advanceWidth * scaleFactor)
    if value > 0xFFFF:
        log.debug("The advance width %d scaled to %d and was clamped to 65535.", advanceWidth, value)
        value = 0xFFFF
    return max(value, 1)


# ------
# Writer
# ------

class SFNTWriter(object):

    """
    This object compiles tables into a new sfnt font. Tables
    are written in the order they are set. Each table starts
    on a 4-byte boundary and is followed by null padding. The
    offset, length and checksum in each directory entry are
    calculated from the data.

    If searchRange, entrySelector and rangeShift are not given,
    they are calculated from numTables.
    """

    def __init__(self, numTables, sfntVersion="\000\001\000\000",
            searchRange=None, entrySelector=None, rangeShift=None):
        self.sfntVersion = Tag(sfntVersion)
        self.numTables = numTables
        if searchRange is None or entrySelector is None or rangeShift is None:
            searchRange, entrySelector, rangeShift = getSearchRange(numTables, sfntDirectoryEntrySize)
        self.searchRange = searchRange
        self.entrySelector = entrySelector
        self.rangeShift = rangeShift
        self.tables = []

    def setTable(self, tag, data):
        entry = SFNTDirectoryEntry()
        entry.tag = Tag(tag)
        entry.checkSum = 0
        entry.offset = 0
        entry.length = len(data)
        self.tables.append((entry, data))

    def compile(self):
        """
        Return the data for the complete font.
        """
        if self.numTables != len(self.tables):
            raise SFNTLibError("wrong number of tables; expected %d, found %d" % (self.numTables, len(self.tables)))
        header = sstruct.pack(sfntDirectoryFormat, dict(
            sfntVersion=self.sfntVersion.tobytes(),
            numTables=self.numTables,
            searchRange=self.searchRange,
            entrySelector=self.entrySelector,
            rangeShift=self.rangeShift
        ))
        # lay out the table data
        tableData = []
        position = sfntDirectorySize + (sfntDirectoryEntrySize * self.numTables)
        padding = calcPaddingLength(position)
        if padding:
            tableData.append(b"\0" * padding)
            position += padding
        for entry, data in self.tables:
            if position % 4:
                raise WriteAlignmentError("The '%s' table would start at offset %d, which is not on a 4-byte boundary." % (entry.tag, position))
            entry.offset = position
            entry.length = len(data)
            data = padData(data)
            entry.checkSum = calcTableChecksum(data)
            log.debug("Writing '%s' table: offset %d, length %d, checksum 0x%08X", entry.tag, entry.offset, entry.length, entry.checkSum)
            tableData.append(data)
            position += len(data)
        # the checksums are known, so the directory can be packed
        directory = [entry.toString() for entry, data in self.tables]
        return header + b"".join(directory) + b"".join(tableData)


# ---------
# Directory
# ---------

class SFNTDirectoryEntry(object):

    def fromString(self, data):
        sstruct.unpack(sfntDirectoryEntryFormat, data, self)
        self.tag = Tag(self.tag)

    def toString(self):
        values = dict(self.__dict__)
        values["tag"] = Tag(self.tag).tobytes()
        return sstruct.pack(sfntDirectoryEntryFormat, values)

    def __repr__(self):
        if hasattr(self, "tag"):
            return "<SFNTDirectoryEntry '%s' at %x>" % (self.tag, id(self))
        else:
            return "<SFNTDirectoryEntry at %x>" % id(self)


# ------
# Errors
# ------

class SFNTLibError(Exception): pass

class MalformedHeaderError(SFNTLibError): pass

class TruncatedInputError(SFNTLibError): pass

class MalformedTableError(SFNTLibError): pass

class InvalidScaleFactorError(SFNTLibError): pass

class WriteAlignmentError(SFNTLibError): pass


# -------
# Helpers
# -------

def calc4BytePaddedLength(length):
    """
    >>> [calc4BytePaddedLength(i) for i in range(9)]
    [0, 4, 4, 4, 4, 8, 8, 8, 8]
    """
    return (length + 3) & ~3

def calcPaddingLength(length):
    return calc4BytePaddedLength(length) - length

def padData(data):
    return data + b"\0" * calcPaddingLength(len(data))

def calcTableChecksum(data):
    """
    The data is padded with null bytes to a multiple
    of four and summed as big endian unsigned longs.

    >>> hex(calcTableChecksum(b"\\x00\\x01\\x00\\x02\\x00\\x03"))
    '0x40002'
    >>> calcTableChecksum(b"\\xff\\xff\\xff\\xff\\x00\\x00\\x00\\x02")
    1
    """
    return calcChecksum(data) & 0xffffffff

# ----------------
# SFNT Conformance
# ----------------

def checkSFNTConformance(data):
    """
    This function checks the structure of sfnt data.
    This includes:
    - the header and the table directory must fit in the data.
    - offset to each table must be after the table directory
      and before the end of the data.
    - offset + length of each table must not extend past
      the end of the data.
    - tables must not overlap.
    - tables must be padded to 4 byte boundaries.
    - the final table must be padded to a 4 byte boundary.
    - the gaps between table data blocks must not be more
      than necessary to pad the table to a 4 byte boundary.
    - the gap between the end of the final table and
      the end of the data must not be more than necessary
      to pad the table to a four byte boundary.
    - the padding bytes must be null.
    - the checksums for each table in the table directory
      must be correct.

    The head checkSumAdjustment, the searchRange, entrySelector
    and rangeShift values and the order of the table directory
    are not checked.

    The returned value of this function will be a list.
    If any errors were found, they will be represented
    as strings in the list.
    """
    if len(data) < sfntDirectorySize:
        return ["The data is too short to contain an sfnt header."]
    # unpack the header
    header = sstruct.unpack(sfntDirectoryFormat, data[:sfntDirectorySize])
    numTables = header["numTables"]
    if sfntDirectorySize + (sfntDirectoryEntrySize * numTables) > len(data):
        return ["The data is too short to contain the table directory."]
    if not numTables:
        return []
    # unpack the table directory
    tableDirectory = []
    for index in range(numTables):
        start = sfntDirectorySize + (index * sfntDirectoryEntrySize)
        entry = sstruct.unpack(sfntDirectoryEntryFormat, data[start:start + sfntDirectoryEntrySize])
        entry["tag"] = Tag(entry["tag"])
        tableDirectory.append(entry)
    # sanity testing
    errors = []
    errors += _testOffsetBoundaryValidity(len(data), tableDirectory)
    errors += _testLengthBoundaryValidity(len(data), tableDirectory)
    # if one or more errors have already been found, something
    # is very wrong and this should come to a screeching halt.
    if errors:
        return errors
    # load the table data
    for entry in tableDirectory:
        offset = entry["offset"]
        length = entry["length"]
        entry["data"] = data[offset:offset + length]
    errors += _testOverlaps(tableDirectory)
    errors += _testOffsets(tableDirectory)
    errors += _testFinalTablePadding(len(data), tableDirectory)
    errors += _testGaps(tableDirectory)
    errors += _testGapAfterFinalTable(len(data), tableDirectory)
    errors += _testPaddingValue(tableDirectory, data)
    errors += _testCheckSums(tableDirectory)
    return errors

def _sortedByOffset(tableDirectory):
    return sorted(tableDirectory, key=lambda entry: (entry["offset"], entry["tag"]))

def _testOffsetBoundaryValidity(dataLength, tableDirectory):
    """
    >>> test = [
    ...     dict(tag="test", offset=28)
    ... ]
    >>> bool(_testOffsetBoundaryValidity(45, test))
    False
    >>> test = [
    ...     dict(tag="test", offset=1)
    ... ]
    >>> bool(_testOffsetBoundaryValidity(45, test))
    True
    >>> test = [
    ...     dict(tag="test", offset=46)
    ... ]
    >>> bool(_testOffsetBoundaryValidity(45, test))
    True
    """
    errors = []
    minOffset = sfntDirectorySize + (sfntDirectoryEntrySize * len(tableDirectory))
    for entry in tableDirectory:
        offset = entry["offset"]
        if offset < minOffset or offset > dataLength:
            errors.append("The offset to the %s table is not valid." % entry["tag"])
    return errors

def _testLengthBoundaryValidity(dataLength, tableDirectory):
    """
    >>> test = [
    ...     dict(tag="test", offset=44, length=1)
    ... ]
    >>> bool(_testLengthBoundaryValidity(45, test))
    False
    >>> test = [
    ...     dict(tag="test", offset=44, length=2)
    ... ]
    >>> bool(_testLengthBoundaryValidity(45, test))
    True
    """
    errors = []
    for entry in _sortedByOffset(tableDirectory):
        if entry["offset"] + entry["length"] > dataLength:
            errors.append("The length of the %s table is not valid." % entry["tag"])
    return errors

def _testOverlaps(tableDirectory):
    """
    >>> test = [
    ...     dict(tag="aaaa", offset=0, length=100),
    ...     dict(tag="bbbb", offset=1000, length=100),
    ... ]
    >>> bool(_testOverlaps(test))
    False
    >>> test = [
    ...     dict(tag="aaaa", offset=0, length=100),
    ...     dict(tag="bbbb", offset=50, length=100),
    ... ]
    >>> _testOverlaps(test)
    ['The tables aaaa and bbbb overlap.']
    >>> test = [
    ...     dict(tag="aaaa", offset=0, length=100),
    ...     dict(tag="bbbb", offset=0, length=150),
    ... ]
    >>> bool(_testOverlaps(test))
    True
    """
    overlaps = set()
    for entry in tableDirectory:
        start = entry["offset"]
        end = start + entry["length"]
        tag = entry["tag"].strip()
        for other in tableDirectory:
            otherTag = other["tag"].strip()
            if other is entry or tag == otherTag:
                continue
            otherStart = other["offset"]
            otherEnd = otherStart + other["length"]
            if start < otherEnd and otherStart < end:
                overlaps.add(tuple(sorted((tag, otherTag))))
    errors = []
    for t1, t2 in sorted(overlaps):
        errors.append("The tables %s and %s overlap." % (t1, t2))
    return errors

def _testOffsets(tableDirectory):
    """
    >>> [bool(_testOffsets([dict(tag="test", offset=offset)])) for offset in (1, 2, 3, 4)]
    [True, True, True, False]
    """
    errors = []
    for entry in _sortedByOffset(tableDirectory):
        if entry["offset"] % 4:
            errors.append("The %s table does not begin on a 4-byte boundary." % entry["tag"].strip())
    return errors

def _testFinalTablePadding(dataLength, tableDirectory):
    """
    >>> test = [dict(tag="test", offset=28, length=1)]
    >>> [bool(_testFinalTablePadding(28 + length, test)) for length in (1, 2, 3, 4)]
    [True, True, True, False]
    """
    finalTable = _sortedByOffset(tableDirectory)[-1]
    if dataLength % 4:
        return ["The final table (%s) is not properly padded." % finalTable["tag"]]
    return []

def _testGaps(tableDirectory):
    """
    >>> start = sfntDirectorySize + (sfntDirectoryEntrySize * 2)
    >>> test = [
    ...     dict(offset=start, length=3, tag="test1"),
    ...     dict(offset=start+4, length=4, tag="test2"),
    ... ]
    >>> bool(_testGaps(test))
    False
    >>> test = [
    ...     dict(offset=start, length=4, tag="test1"),
    ...     dict(offset=start+8, length=4, tag="test2"),
    ... ]
    >>> _testGaps(test)
    ['Improper padding between the test1 and test2 tables.']
    """
    errors = []
    prevTag = None
    prevEnd = None
    for entry in _sortedByOffset(tableDirectory):
        offset = entry["offset"]
        tag = entry["tag"]
        if prevEnd is not None and offset - prevEnd != 0:
            errors.append("Improper padding between the %s and %s tables." % (prevTag, tag))
        prevEnd = offset + calc4BytePaddedLength(entry["length"])
        prevTag = tag
    return errors

def _testGapAfterFinalTable(dataLength, tableDirectory):
    """
    >>> start = sfntDirectorySize + (sfntDirectoryEntrySize * 2)
    >>> test = [
    ...     dict(offset=start, length=1, tag="test")
    ... ]
    >>> bool(_testGapAfterFinalTable(start + 4, test))
    False
    >>> bool(_testGapAfterFinalTable(start + 8, test))
    True
    """
    entry = _sortedByOffset(tableDirectory)[-1]
    lastPosition = entry["offset"] + calc4BytePaddedLength(entry["length"])
    if dataLength - lastPosition > 0:
        return ["Improper padding at the end of the data."]
    return []

def _testPaddingValue(tableDirectory, data):
    """
    >>> testDirectory = [dict(tag="aaaa", offset=28, length=2)]
    >>> bool(_testPaddingValue(testDirectory, b"\\1" * 30 + b"\\0\\0"))
    False
    >>> _testPaddingValue(testDirectory, b"\\1" * 32)
    ['Bytes after final table (aaaa) are not null.']
    >>> testDirectory = [dict(tag="aaaa", offset=28, length=2), dict(tag="bbbb", offset=32, length=4)]
    >>> _testPaddingValue(testDirectory, b"\\1" * 30 + b"\\0\\1" + b"\\1" * 4)
    ['Bytes between aaaa and bbbb are not null.']
    """
    errors = []
    entries = _sortedByOffset(tableDirectory)
    prev = "table directory"
    prevEnd = sfntDirectorySize + (sfntDirectoryEntrySize * len(tableDirectory))
    for entry in entries:
        tag = entry["tag"]
        offset = entry["offset"]
        if offset > prevEnd and data[prevEnd:offset].strip(b"\0"):
            errors.append("Bytes between %s and %s are not null." % (prev, tag))
        prev = tag
        prevEnd = offset + entry["length"]
    if data[prevEnd:].strip(b"\0"):
        errors.append("Bytes after final table (%s) are not null." % prev)
    return errors

def _testCheckSums(tableDirectory):
    """
    >>> data = b"0" * 44
    >>> checkSum = calcTableChecksum(data)
    >>> test = [
    ...     dict(data=data, checkSum=checkSum, tag="test")
    ... ]
    >>> bool(_testCheckSums(test))
    False
    >>> test = [
    ...     dict(data=data, checkSum=checkSum+1, tag="test")
    ... ]
    >>> _testCheckSums(test)
    ['Invalid checksum for the test table.']
    """
    errors = []
    for entry in tableDirectory:
        if entry["checkSum"] != calcTableChecksum(entry["data"]):
            errors.append("Invalid checksum for the %s table." % entry["tag"])
    return errors

if __name__ == "__main__":
    import doctest
    doctest.testmod(verbose=False)
