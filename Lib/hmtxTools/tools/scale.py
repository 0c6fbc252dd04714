"""
A module for scaling the advance widths of TrueType and
OpenType font files. *scaleFontFile* does the work and *main*
runs it from the command line.

It is installed as the hmtx-scale script.
"""

# import

import os
import sys
import logging
import optparse
from hmtxTools import scaleFont, validateScaleFactor, checkSFNTConformance, \
    SFNTLibError, InvalidScaleFactorError

log = logging.getLogger(__name__)

# ---------------
# Public Function
# ---------------

def scaleFontFile(inputPath, outputPath, scaleFactor, check=False):
    """
    Scale the advance widths of the font at *inputPath* and
    write the new font to *outputPath*. The output file is
    only created once the new font has been fully compiled.

    If *check* is True, the structure of the new font is
    checked and any problems are logged as warnings.
    """
    log.info("Processing: %s", inputPath)
    log.info("Scale factor: %.1f%%", scaleFactor * 100)
    f = open(inputPath, "rb")
    data = f.read()
    f.close()
    data = scaleFont(data, scaleFactor)
    if check:
        errors = checkSFNTConformance(data)
        for error in errors:
            log.warning(error)
        if not errors:
            log.info("The structure of the new font is valid.")
    f = open(outputPath, "wb")
    f.write(data)
    f.close()
    log.info("Saved: %s", outputPath)
    return data

# --------------------
# Command Line Behvior
# --------------------

usage = "%prog [options] inputpath outputpath scalefactor"

description = """This tool scales the advance width of every
glyph in a TrueType or OpenType font by a factor greater than
0 and no more than 4. For example, 0.9 makes every glyph 10%
narrower. The glyph outlines are not changed.
"""

def main(args=None):
    parser = optparse.OptionParser(usage=usage, description=description, version="%prog 0.1beta")
    parser.add_option("-c", "--check", action="store_true", dest="check", help="Check the structure of the new font.")
    parser.add_option("-v", "--verbose", action="store_true", dest="verbose", help="Report the details of the reading and writing.")
    parser.add_option("-q", "--quiet", action="store_true", dest="quiet", help="Only report warnings and errors.")
    parser.set_defaults(check=False, verbose=False, quiet=False)
    (options, args) = parser.parse_args(args)
    if len(args) != 3:
        parser.error("An input path, an output path and a scale factor are required.")
    inputPath, outputPath, scaleFactor = args
    try:
        scaleFactor = float(scaleFactor)
        validateScaleFactor(scaleFactor)
    except (ValueError, InvalidScaleFactorError):
        parser.error("The scale factor must be a number greater than 0 and no more than 4: %s" % scaleFactor)
    if options.verbose:
        level = logging.DEBUG
    elif options.quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.basicConfig(level=level, format="%(message)s")
    if not os.path.exists(inputPath):
        log.error("File does not exist: %s", inputPath)
        return 1
    try:
        scaleFontFile(inputPath, outputPath, scaleFactor, check=options.check)
    except (SFNTLibError, IOError) as e:
        log.error("Could not scale %s: %s", inputPath, e)
        return 1
    return 0

if __name__ == "__main__":
    sys.exit(main())
