import os
import shutil
import struct
import tempfile
from hmtxTools.tools.scale import main, scaleFontFile
from hmtxTools.test.test_sfnt import defaultTestTables, packTestFont, unpackTestMetrics

# ------------
# Test Support
# ------------

def makeTestDirectory():
    directory = tempfile.mkdtemp()
    path = os.path.join(directory, "test.ttf")
    f = open(path, "wb")
    f.write(packTestFont(defaultTestTables()))
    f.close()
    return directory, path

def readTestFile(path):
    f = open(path, "rb")
    data = f.read()
    f.close()
    return data

def exitCode(args):
    try:
        return main(args)
    except SystemExit as e:
        return e.code

# --------------
# test functions
# --------------

def testScaleFontFile():
    """
    >>> directory, path = makeTestDirectory()
    >>> outputPath = os.path.join(directory, "narrow.ttf")
    >>> data = scaleFontFile(path, outputPath, 0.5, check=True)
    >>> readTestFile(outputPath) == data
    True
    >>> unpackTestMetrics(data, 2)
    [(250, 10), (500, -20)]
    >>> shutil.rmtree(directory)
    """

def testMain():
    """
    >>> directory, path = makeTestDirectory()
    >>> outputPath = os.path.join(directory, "wide.ttf")
    >>> exitCode(["-q", "--check", path, outputPath, "2"])
    0
    >>> unpackTestMetrics(readTestFile(outputPath), 2)
    [(1000, 10), (2000, -20)]
    >>> shutil.rmtree(directory)
    """

def testMainErrors():
    """
    Usage errors exit with status 2. The output file is
    never created when the input can not be scaled.

    >>> directory, path = makeTestDirectory()
    >>> outputPath = os.path.join(directory, "out.ttf")
    >>> exitCode(["-q", path, outputPath])
    2
    >>> [exitCode(["-q", path, outputPath, value]) for value in ("0", "-1", "4.5", "nan", "inf", "wide")]
    [2, 2, 2, 2, 2, 2]
    >>> exitCode(["-q", os.path.join(directory, "missing.ttf"), outputPath, "0.9"])
    1
    >>> f = open(path, "wb")
    >>> f.write(b"\\0\\1\\0\\0" + struct.pack(">H", 100))
    6
    >>> f.close()
    >>> exitCode(["-q", path, outputPath, "0.9"])
    1
    >>> os.path.exists(outputPath)
    False
    >>> shutil.rmtree(directory)
    """

def testMainFileErrors():
    """
    File system errors are reported and exit with status 1.

    >>> directory, path = makeTestDirectory()
    >>> exitCode(["-q", path, os.path.join(directory, "missing", "out.ttf"), "0.5"])
    1
    >>> exitCode(["-q", directory, os.path.join(directory, "out.ttf"), "0.5"])
    1
    >>> os.path.exists(os.path.join(directory, "out.ttf"))
    False
    >>> shutil.rmtree(directory)
    """

if __name__ == "__main__":
    import doctest
    doctest.testmod(verbose=False)
