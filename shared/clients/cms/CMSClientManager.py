from shared.helper.HelperConfig import HelperConfig
from shared.clients.cms.CMSClientInterface import CMSClientInterface

class CMSClientManager:
    """
    Manager class to handle the CMS client based on configuration.
    """

    # engine names whose class name is not the plain capitalized form
    _ENGINE_DISPLAY_NAMES = {"sharepoint": "SharePoint"}

    def __init__(self, helper_config: HelperConfig, base_url: str | None = None):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self._base_url = base_url
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """
        Reads the CMS engine from ENV configuration.

        Returns:
            str: The name of the CMS engine as used in its class name. E.g. "SharePoint"

        Raises:
            ValueError: If no CMS engine is specified in the configuration.
        """
        engine = self.helper_config.get_string_val("CMS_ENGINE", default="")
        if not engine:
            raise ValueError("No CMS engine specified in configuration.")

        engine = engine.strip().lower()
        return self._ENGINE_DISPLAY_NAMES.get(engine, engine.capitalize())

    def _initialize_client(self) -> CMSClientInterface:
        """
        Initializes the CMS client based on the engine specified in the configuration.

        Returns:
            CMSClientInterface: An instance of the CMS client that implements the CMSClientInterface.

        Raises:
            ValueError: If the engine is unsupported or its configuration is invalid.
        """
        engine = self._get_engine_from_env()
        className = f"CMSClient{engine}"
        # try to import the class from shared.clients.cms.{engine}
        try:
            module = __import__(
                f"shared.clients.cms.{engine.lower()}.{className}",
                fromlist=[className],
            )
            client_class = getattr(module, className)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported CMS engine specified: '{engine}'. Error: {e}")

        client = client_class(helper_config=self.helper_config, base_url=self._base_url)
        self.logging.debug(f"Instantiated CMS client for engine: {engine} ({client.get_base_url()})")
        return client

    def get_client(self) -> CMSClientInterface:
        """
        Returns the instantiated CMS client.

        Returns:
            CMSClientInterface: The CMS client instance.
        """
        return self.client
