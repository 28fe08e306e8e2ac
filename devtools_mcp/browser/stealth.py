"""
Stealth instrumentation applied once to every launched or attached browser.

The init script runs before any page script in every existing and future
page of each context of the handle.
"""

from devtools_mcp.browser.handle import BrowserHandle
from devtools_mcp.utils.logger import get_logger

logger = get_logger(__name__)

STEALTH_SCRIPT = """
(() => {
  const defineGetter = (target, key, getter) => {
    try {
      Object.defineProperty(target, key, { get: getter, configurable: true });
    } catch (_err) {}
  };

  // navigator.webdriver reads as undefined
  defineGetter(Navigator.prototype, 'webdriver', () => undefined);

  if (!navigator.plugins || navigator.plugins.length === 0) {
    const plugins = [
      { name: 'PDF Viewer', filename: 'internal-pdf-viewer', description: 'Portable Document Format' },
      { name: 'Chrome PDF Viewer', filename: 'internal-pdf-viewer', description: 'Portable Document Format' },
      { name: 'Chromium PDF Viewer', filename: 'internal-pdf-viewer', description: 'Portable Document Format' },
    ];
    defineGetter(Navigator.prototype, 'plugins', () => plugins);
  }

  if (!navigator.languages || navigator.languages.length === 0) {
    defineGetter(Navigator.prototype, 'languages', () => ['en-US', 'en']);
  }

  if (!window.chrome) {
    window.chrome = { runtime: {} };
  }

  const permissions = window.navigator.permissions;
  if (permissions && typeof permissions.query === 'function') {
    const originalQuery = permissions.query.bind(permissions);
    permissions.query = (parameters) => {
      if (parameters && parameters.name === 'notifications') {
        return Promise.resolve({
          name: 'notifications',
          state: Notification.permission,
          onchange: null,
        });
      }
      return originalQuery(parameters);
    };
  }
})();
"""


async def install_stealth(handle: BrowserHandle) -> bool:
    """
    Install the stealth init script on ``handle``.

    Returns False when the handle was already instrumented. The flag is set
    before the first await so a concurrent call cannot install twice.
    """
    if handle.stealth_installed:
        return False
    handle.stealth_installed = True

    # Registered on the handle so contexts created later get it too.
    await handle.add_init_script(STEALTH_SCRIPT)
    for page in handle.all_pages():
        # Pages already loaded missed the init script for their document.
        try:
            await page.evaluate(STEALTH_SCRIPT)
        except Exception as e:
            logger.debug(f"Stealth evaluation skipped for {page.url}: {e}")

    logger.debug(f"Stealth instrumentation installed on {handle!r}")
    return True
